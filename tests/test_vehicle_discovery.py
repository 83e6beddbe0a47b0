from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from pycapmetro.exceptions import StoreError
from pycapmetro.ingestion.vehicles import discover_vehicles
from pycapmetro.models import GeoPoint, Vehicle, VehiclePosition
from pycapmetro.store import MemoryStore

_T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
_NOW = _T0 + timedelta(hours=2)


def _position(vehicle_id: str, trip_id: str = "T1", minutes: int = 0) -> VehiclePosition:
    return VehiclePosition(
        vehicle_id=vehicle_id,
        route="803",
        route_id="803-ID",
        trip_id=trip_id,
        location=GeoPoint(latitude=30.27, longitude=-97.74),
        timestamp=_T0 + timedelta(minutes=minutes),
    )


@pytest.mark.asyncio
async def test_new_vehicles_are_registered_with_discovery_time() -> None:
    store = MemoryStore()
    await store.insert_positions([_position("V1"), _position("V2"), _position("V1", minutes=1)])

    count = await discover_vehicles(store, clock=lambda: _NOW)

    assert count == 2
    vehicle = store.vehicles["V1"]
    assert vehicle.last_analyzed == _NOW
    assert vehicle.route_id == "803-ID"
    assert vehicle.trip_id == "T1"


@pytest.mark.asyncio
async def test_discovery_is_idempotent() -> None:
    store = MemoryStore()
    await store.insert_positions([_position("V1")])

    await discover_vehicles(store, clock=lambda: _NOW)
    again = await discover_vehicles(store, clock=lambda: _NOW + timedelta(hours=4))

    assert again == 0
    assert store.vehicles["V1"].last_analyzed == _NOW


@pytest.mark.asyncio
async def test_vehicle_seen_on_two_trips_is_registered_once() -> None:
    store = MemoryStore()
    await store.insert_positions([_position("V1", "T1"), _position("V1", "T2", minutes=30)])

    assert await discover_vehicles(store, clock=lambda: _NOW) == 1
    assert list(store.vehicles) == ["V1"]


@pytest.mark.asyncio
async def test_known_vehicles_are_left_alone() -> None:
    store = MemoryStore()
    known = Vehicle(vehicle_id="V1", route="803", trip_id="OLD", last_analyzed=_T0)
    await store.insert_vehicle(known)
    await store.insert_positions([_position("V1")])

    assert await discover_vehicles(store, clock=lambda: _NOW) == 0
    assert store.vehicles["V1"] == known


@pytest.mark.asyncio
async def test_store_errors_propagate() -> None:
    class BrokenStore(MemoryStore):
        async def distinct_vehicle_keys(self):  # type: ignore[override]
            raise StoreError("read failed")

    with pytest.raises(StoreError):
        await discover_vehicles(BrokenStore())
