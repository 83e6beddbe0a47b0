"""Base model and shared field types.

Every record model inherits from :class:`CapMetroBaseModel`, which is
frozen and ignores unknown keys so raw feed dicts and store rows can be
validated directly.

Timestamps are always UTC-aware datetimes; :data:`UtcTimestamp` coerces
epoch seconds, epoch milliseconds, ISO 8601 strings and naive datetimes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from pycapmetro.ingestion.normalize import parse_timestamp, safe_float


def _require_timestamp(value: Any) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"not a timestamp: {value!r}")
    return parsed


def _require_identifier(value: str) -> str:
    if not value:
        raise ValueError("identifier must be non-empty")
    return value


def _coerce_identifier(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        return value.strip()
    return value


UtcTimestamp = Annotated[datetime, BeforeValidator(_require_timestamp)]
"""Annotated type that coerces feed timestamps to UTC-aware datetimes."""

Identifier = Annotated[str, BeforeValidator(_coerce_identifier), AfterValidator(_require_identifier)]
"""Non-empty string id; numeric feed ids are stringified."""

OptionalIdentifier = Annotated[str, BeforeValidator(lambda v: "" if v is None else _coerce_identifier(v))]


class CapMetroBaseModel(BaseModel):
    """Base for records exchanged with the feed and the store."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )


class GeoPoint(CapMetroBaseModel):
    """A WGS84 coordinate in degrees.

    Also accepts the ``"lat,lon"`` string form some feeds use.
    """

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat", "stop_lat"), ge=-90.0, le=90.0)
    longitude: float = Field(
        validation_alias=AliasChoices("longitude", "lon", "lng", "stop_lon"),
        ge=-180.0,
        le=180.0,
    )

    @model_validator(mode="before")
    @classmethod
    def _parse_pair(cls, values: Any) -> Any:
        if isinstance(values, str):
            parts = values.split(",")
            if len(parts) != 2:
                raise ValueError(f"expected 'lat,lon', got {values!r}")
            return {"latitude": safe_float(parts[0]), "longitude": safe_float(parts[1])}
        return values

    def as_tuple(self) -> tuple[float, float]:
        return self.latitude, self.longitude
