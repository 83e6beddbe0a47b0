"""Vehicle catalog models."""

from __future__ import annotations

from pycapmetro.models._base import CapMetroBaseModel, Identifier, OptionalIdentifier, UtcTimestamp


class VehicleKey(CapMetroBaseModel):
    """A distinct vehicle/route/trip combination found in recorded positions."""

    vehicle_id: Identifier
    route: Identifier
    route_id: OptionalIdentifier = ""
    trip_id: OptionalIdentifier = ""


class Vehicle(CapMetroBaseModel):
    """A known vehicle and its stop-time watermark.

    ``last_analyzed`` marks how far this vehicle's positions have been
    turned into stop-times. It is only ever moved forward, and only after
    the stop-times derived up to that point were written.
    """

    vehicle_id: Identifier
    route: Identifier
    route_id: OptionalIdentifier = ""
    trip_id: OptionalIdentifier = ""
    last_analyzed: UtcTimestamp
