"""Collector configuration for pycapmetro."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pycapmetro import _constants
from pycapmetro.exceptions import CapMetroConfigError


def _env_routes(value: str) -> tuple[str, ...]:
    routes = tuple(part.strip() for part in value.split(",") if part.strip())
    if not routes:
        raise CapMetroConfigError("CMDATA_ROUTES must list at least one route")
    return routes


def _env_number(name: str, value: str, kind: type[int] | type[float]) -> int | float:
    try:
        return kind(value)
    except ValueError as exc:
        raise CapMetroConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class CapMetroConfig:
    """Collector configuration.

    All values are static for the lifetime of the process.

    Parameters
    ----------
    store_url : str
        SQLAlchemy database URL of the position store
        (e.g. ``"sqlite:///capmetro.db"`` or ``"postgresql://user:pw@host/db"``).
    feed_url : str
        Vehicle position feed URL template. ``{route}`` is replaced with
        the route identifier on every poll.
    routes : tuple of str
        Route identifiers to poll.
    max_distance : float
        Maximum distance in metres between a recorded position and the
        stop it is matched to.
    max_retries : int
        Number of counted empty responses every route must reach before
        the collector switches to the extended sleep.
    normal_sleep : float
        Seconds between iterations while the feed is active.
    extended_sleep : float
        Seconds between iterations once every route went quiet.
    vehicle_check_interval : float
        Seconds between two new-vehicle discovery passes.
    request_timeout : float
        Total timeout in seconds for one feed request.
    """

    store_url: str = _constants.STORE_URL
    feed_url: str = ""
    routes: tuple[str, ...] = _constants.ROUTES
    max_distance: float = _constants.MAX_DISTANCE
    max_retries: int = _constants.MAX_RETRIES
    normal_sleep: float = _constants.NORMAL_SLEEP
    extended_sleep: float = _constants.EXTENDED_SLEEP
    vehicle_check_interval: float = _constants.VEHICLE_CHECK_INTERVAL
    request_timeout: float = _constants.REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        if not self.routes:
            raise CapMetroConfigError("at least one route must be configured")
        if self.max_distance <= 0:
            raise CapMetroConfigError(f"max_distance must be positive, got {self.max_distance}")
        if self.max_retries < 1:
            raise CapMetroConfigError(f"max_retries must be at least 1, got {self.max_retries}")

    @classmethod
    def from_env(cls, **overrides: Any) -> CapMetroConfig:
        """Create configuration from ``CMDATA_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        CapMetroConfigError
            If a variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "CMDATA_STORE_URL": "store_url",
            "CMDATA_FEED_URL": "feed_url",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "CMDATA_MAX_DISTANCE": ("max_distance", float),
            "CMDATA_MAX_RETRIES": ("max_retries", int),
            "CMDATA_NORMAL_SLEEP": ("normal_sleep", float),
            "CMDATA_EXTENDED_SLEEP": ("extended_sleep", float),
            "CMDATA_VEHICLE_CHECK_INTERVAL": ("vehicle_check_interval", float),
            "CMDATA_REQUEST_TIMEOUT": ("request_timeout", float),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, (field_name, kind) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, kind)

        routes_env = env.get("CMDATA_ROUTES")
        if routes_env is not None and "routes" not in overrides:
            config_kwargs["routes"] = _env_routes(routes_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
