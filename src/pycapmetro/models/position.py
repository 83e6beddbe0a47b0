"""Vehicle position model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from pycapmetro.models._base import CapMetroBaseModel, GeoPoint, Identifier, OptionalIdentifier, UtcTimestamp


class VehiclePosition(CapMetroBaseModel):
    """One observation of a vehicle reported by the feed.

    Field names are the stored shape; validation also accepts the vendor
    spellings seen in feed payloads (``vehicleId``, ``Tripid``, flat
    ``lat``/``lon`` keys, epoch timestamps).
    """

    vehicle_id: Identifier = Field(validation_alias=AliasChoices("vehicle_id", "vehicleId", "Vehicleid", "vehicle"))
    """Vehicle identifier, unique across the fleet."""
    route: Identifier = Field(validation_alias=AliasChoices("route", "Route", "routeShortName"))
    """Public route name the vehicle is running on (e.g. ``"803"``)."""
    route_id: OptionalIdentifier = Field(default="", validation_alias=AliasChoices("route_id", "routeId", "Routeid"))
    """Agency-internal route identifier, when the feed has one."""
    trip_id: OptionalIdentifier = Field(default="", validation_alias=AliasChoices("trip_id", "tripId", "Tripid"))
    """Scheduled trip identifier."""
    location: GeoPoint = Field(validation_alias=AliasChoices("location", "position", "Position", "Positions"))
    """Reported coordinate."""
    timestamp: UtcTimestamp = Field(
        validation_alias=AliasChoices("timestamp", "time", "Updatetime", "updateTime", "lastUpdated")
    )
    """When the feed observed the vehicle at ``location``."""

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_coordinates(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if any(key in values for key in ("location", "position", "Position", "Positions")):
            return values
        lat = values.get("latitude", values.get("lat"))
        lon = values.get("longitude", values.get("lon", values.get("lng")))
        if lat is None or lon is None:
            return values
        merged = dict(values)
        merged["location"] = {"latitude": lat, "longitude": lon}
        return merged
