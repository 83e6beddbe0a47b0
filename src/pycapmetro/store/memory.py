"""In-memory store.

Keeps everything in process memory; used by the test-suite and for dry
runs (``--store memory://``).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from pycapmetro.exceptions import StoreError
from pycapmetro.models import GeoPoint, Stop, Vehicle, VehicleKey, VehiclePosition, VehicleStopTime
from pycapmetro.store.base import StoreStats
from pycapmetro.store.spatial import StopIndex


class MemoryStore:
    """A :class:`~pycapmetro.store.base.Store` backed by lists and dicts."""

    def __init__(self, stops: Sequence[Stop] = ()) -> None:
        self.positions: list[VehiclePosition] = []
        self.stop_times: list[VehicleStopTime] = []
        self.vehicles: dict[str, Vehicle] = {}
        self._stops = StopIndex(stops)

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def insert_positions(self, batch: Sequence[VehiclePosition]) -> int:
        self.positions.extend(batch)
        return len(batch)

    async def insert_stop_times(self, batch: Sequence[VehicleStopTime]) -> int:
        self.stop_times.extend(batch)
        return len(batch)

    async def insert_stops(self, stops: Sequence[Stop]) -> int:
        self._stops.extend(stops)
        return len(stops)

    async def insert_vehicle(self, vehicle: Vehicle) -> None:
        if vehicle.vehicle_id in self.vehicles:
            raise StoreError(f"vehicle {vehicle.vehicle_id} already exists")
        self.vehicles[vehicle.vehicle_id] = vehicle

    async def update_vehicle_watermark(self, vehicle_id: str, at: datetime) -> None:
        vehicle = self.vehicles.get(vehicle_id)
        if vehicle is None:
            raise StoreError(f"unknown vehicle {vehicle_id}")
        self.vehicles[vehicle_id] = vehicle.model_copy(update={"last_analyzed": at})

    async def contains_vehicle(self, vehicle_id: str) -> bool:
        return vehicle_id in self.vehicles

    async def list_vehicles(self) -> list[Vehicle]:
        return list(self.vehicles.values())

    async def distinct_vehicle_keys(self) -> list[VehicleKey]:
        keys: dict[tuple[str, str, str, str], VehicleKey] = {}
        for p in self.positions:
            ident = (p.vehicle_id, p.route, p.route_id, p.trip_id)
            if ident not in keys:
                keys[ident] = VehicleKey(vehicle_id=p.vehicle_id, route=p.route, route_id=p.route_id, trip_id=p.trip_id)
        return list(keys.values())

    async def positions_since(self, vehicle_id: str, start: datetime, end: datetime) -> list[VehiclePosition]:
        found = [p for p in self.positions if p.vehicle_id == vehicle_id and start <= p.timestamp <= end]
        found.sort(key=lambda p: p.timestamp)
        return found

    async def nearest_stop(self, point: GeoPoint, max_distance: float) -> Stop | None:
        return self._stops.nearest(point, max_distance)

    async def stats(self) -> StoreStats:
        return StoreStats(
            positions=len(self.positions),
            vehicles=len(self.vehicles),
            stops=len(self._stops),
            stop_times=len(self.stop_times),
            latest_position=max((p.timestamp for p in self.positions), default=None),
        )
