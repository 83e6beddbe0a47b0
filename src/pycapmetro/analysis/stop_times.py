"""Stop-time derivation.

For every known vehicle, positions recorded since the vehicle's
``last_analyzed`` watermark are matched to their nearest stop. Runs of
matches at the same stop (a bus dwelling at a stop, reporting several
positions) collapse into the first observation, giving the ordered list
of stops the vehicle passed and when.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from pycapmetro.exceptions import StoreError
from pycapmetro.models import Vehicle, VehiclePosition, VehicleStopTime
from pycapmetro.store.base import Store

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class StopTimeSummary:
    """Outcome of one pass over all known vehicles."""

    vehicles: int = 0
    processed: int = 0
    failed: int = 0
    stop_times: int = 0


def should_append(sequence: Sequence[VehicleStopTime], candidate: VehicleStopTime) -> bool:
    """Whether *candidate* extends *sequence* with a new stop visit.

    A match at the same stop as the previous retained match, and not
    earlier than it, is part of the same dwell and is dropped.
    """
    if not sequence:
        return True
    previous = sequence[-1]
    return not (previous.stop_id == candidate.stop_id and candidate.timestamp >= previous.timestamp)


async def match_positions(
    store: Store,
    vehicle: Vehicle,
    positions: Sequence[VehiclePosition],
    *,
    max_distance: float,
) -> list[VehicleStopTime]:
    """Turn *positions* (oldest first) into a collapsed stop-time sequence.

    Positions farther than *max_distance* metres from every stop are skipped.
    """
    stop_times: list[VehicleStopTime] = []
    for position in sorted(positions, key=lambda p: p.timestamp):
        stop = await store.nearest_stop(position.location, max_distance)
        if stop is None:
            continue
        candidate = VehicleStopTime(
            vehicle_id=vehicle.vehicle_id,
            route=position.route,
            trip_id=position.trip_id,
            stop_id=stop.stop_id,
            timestamp=position.timestamp,
        )
        if not should_append(stop_times, candidate):
            _logger.debug("Skip stop time at %s for vehicle %s (dwell)", stop.stop_id, vehicle.vehicle_id)
            continue
        stop_times.append(candidate)
        _logger.debug("Added stop time: stop=%s, time=%s", candidate.stop_id, candidate.timestamp.isoformat())
    return stop_times


async def process_vehicle(
    store: Store,
    vehicle: Vehicle,
    *,
    max_distance: float,
    clock: Callable[[], datetime] = _utcnow,
) -> int | None:
    """Derive and store the stop-times of one vehicle, then advance its watermark.

    Returns the number of stop-times written, or ``None`` when the vehicle
    had no positions since its watermark. Store errors propagate and leave
    the watermark untouched.
    """
    scan_time = clock()
    positions = await store.positions_since(vehicle.vehicle_id, vehicle.last_analyzed, scan_time)
    if not positions:
        _logger.debug(
            "No positions available for vehicle %s after %s",
            vehicle.vehicle_id,
            vehicle.last_analyzed.isoformat(),
        )
        return None

    _logger.debug(
        "Processing %d positions for vehicle %s after %s",
        len(positions),
        vehicle.vehicle_id,
        vehicle.last_analyzed.isoformat(),
    )
    stop_times = await match_positions(store, vehicle, positions, max_distance=max_distance)
    await store.insert_stop_times(stop_times)
    await store.update_vehicle_watermark(vehicle.vehicle_id, max(vehicle.last_analyzed, scan_time))
    _logger.debug("Added %d stop times for vehicle %s", len(stop_times), vehicle.vehicle_id)
    return len(stop_times)


async def make_vehicle_stop_times(
    store: Store,
    *,
    max_distance: float,
    clock: Callable[[], datetime] = _utcnow,
) -> StopTimeSummary:
    """Run :func:`process_vehicle` for every known vehicle, one at a time.

    A failure for one vehicle is logged and the pass moves on; that vehicle
    is retried from its unchanged watermark on the next pass. Failing to
    list the vehicles propagates.
    """
    summary = StopTimeSummary()
    vehicles = await store.list_vehicles()
    if not vehicles:
        _logger.debug("No vehicles available for making stop times")
        return summary

    summary.vehicles = len(vehicles)
    for vehicle in vehicles:
        try:
            written = await process_vehicle(store, vehicle, max_distance=max_distance, clock=clock)
        except StoreError as exc:
            summary.failed += 1
            _logger.error("Making stop times for vehicle %s failed: %s", vehicle.vehicle_id, exc)
            continue
        if written is None:
            continue
        summary.processed += 1
        summary.stop_times += written

    _logger.info(
        "Stop times: %d written for %d of %d vehicles (%d failed)",
        summary.stop_times,
        summary.processed,
        summary.vehicles,
        summary.failed,
    )
    return summary
