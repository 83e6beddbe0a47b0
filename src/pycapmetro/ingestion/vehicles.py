"""New-vehicle discovery."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pycapmetro.models import Vehicle
from pycapmetro.store.base import Store

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def discover_vehicles(store: Store, *, clock: Callable[[], datetime] = _utcnow) -> int:
    """Register vehicles that appear in recorded positions but not in the catalog.

    New vehicles get ``last_analyzed`` set to the discovery time, so only
    positions recorded from then on are turned into stop-times. Re-running
    with nothing new is a no-op.

    Returns the number of vehicles registered. Store errors propagate.
    """
    _logger.debug("Checking for new vehicles")
    keys = await store.distinct_vehicle_keys()

    registered: set[str] = set()
    for key in keys:
        if key.vehicle_id in registered or await store.contains_vehicle(key.vehicle_id):
            continue
        _logger.debug("Adding new vehicle %s (route %s)", key.vehicle_id, key.route)
        await store.insert_vehicle(
            Vehicle(
                vehicle_id=key.vehicle_id,
                route=key.route,
                route_id=key.route_id,
                trip_id=key.trip_id,
                last_analyzed=clock(),
            )
        )
        registered.add(key.vehicle_id)

    _logger.info("Registered %d new vehicles", len(registered))
    return len(registered)
