"""Per-route poll outcomes."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PollOutcome(StrEnum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"

    @property
    def is_empty(self) -> bool:
        """Whether the outcome counts as an empty response for backoff."""
        return self is not PollOutcome.SUCCESS


class RoutePollResult(BaseModel):
    """Summary of one route poll within an iteration."""

    model_config = ConfigDict(frozen=True)

    route: str
    outcome: PollOutcome
    received: int = Field(default=0, description="Positions returned by the feed")
    accepted: int = Field(default=0, description="Positions that passed deduplication")
    stored: bool = Field(default=False, description="Accepted positions were written")
    error: str | None = None
