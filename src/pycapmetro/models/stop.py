"""Stop catalog and derived stop-time models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from pycapmetro.models._base import CapMetroBaseModel, GeoPoint, Identifier, OptionalIdentifier, UtcTimestamp


class Stop(CapMetroBaseModel):
    """A stop from the static catalog.

    Validates GTFS ``stops.txt`` rows directly (``stop_lat``/``stop_lon``
    are folded into ``location``).
    """

    stop_id: Identifier
    location: GeoPoint
    name: OptionalIdentifier = Field(default="", validation_alias=AliasChoices("name", "stop_name"))

    @model_validator(mode="before")
    @classmethod
    def _lift_gtfs_coordinates(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "location" in values:
            return values
        if "stop_lat" in values and "stop_lon" in values:
            merged = dict(values)
            merged["location"] = {"latitude": values["stop_lat"], "longitude": values["stop_lon"]}
            return merged
        return values


class VehicleStopTime(CapMetroBaseModel):
    """A vehicle was nearest to ``stop_id`` at ``timestamp``."""

    vehicle_id: Identifier
    route: Identifier
    trip_id: OptionalIdentifier = ""
    stop_id: Identifier
    timestamp: UtcTimestamp
