"""Vehicle position feed parsing.

Feeds come in two shapes: a flat JSON array of vehicles (optionally
wrapped as ``{"vehicles": [...]}``), or a GTFS-realtime feed rendered as
JSON, where each ``entity`` carries a nested ``vehicle`` descriptor.
Both are flattened into :class:`~pycapmetro.models.VehiclePosition`.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pycapmetro.models import VehiclePosition

_logger = logging.getLogger(__name__)

_ROUTE_KEYS = ("route", "Route", "routeShortName")


def _entries(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("vehicles", "entity", "data"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                return _entries(value)
    return []


def _flatten_gtfs_entity(entry: dict[str, Any]) -> dict[str, Any]:
    """Flatten a GTFS-realtime ``VehiclePosition`` entity."""
    vehicle = entry.get("vehicle")
    if not isinstance(vehicle, dict) or "position" not in vehicle:
        return entry
    descriptor = vehicle.get("vehicle") if isinstance(vehicle.get("vehicle"), dict) else {}
    trip = vehicle.get("trip") if isinstance(vehicle.get("trip"), dict) else {}
    route_id = trip.get("routeId") or trip.get("route_id")
    return {
        "vehicle_id": descriptor.get("id") or descriptor.get("label") or entry.get("id"),
        "route": route_id,
        "route_id": route_id,
        "trip_id": trip.get("tripId") or trip.get("trip_id"),
        "location": vehicle.get("position"),
        "timestamp": vehicle.get("timestamp"),
    }


def parse_feed_payload(route: str, payload: Any) -> list[VehiclePosition]:
    """Extract the positions reported for *route*.

    Entries without a route are attributed to *route*; entries for other
    routes and entries that fail validation are dropped.
    """
    positions: list[VehiclePosition] = []
    for entry in _entries(payload):
        if not isinstance(entry, dict):
            continue
        data = {key: value for key, value in _flatten_gtfs_entity(entry).items() if value is not None}
        if not any(key in data for key in _ROUTE_KEYS):
            data["route"] = route
        try:
            position = VehiclePosition.model_validate(data)
        except ValidationError as exc:
            _logger.debug("Dropping unparseable vehicle entry for route %s: %s", route, exc.errors()[:1])
            continue
        if route not in (position.route, position.route_id):
            continue
        positions.append(position)
    return positions
