"""Store interface used by the collector.

Having a protocol here makes it easy to pass test doubles while keeping
the production implementations (:class:`~pycapmetro.store.sql.SqlStore`,
:class:`~pycapmetro.store.memory.MemoryStore`) concrete.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from pycapmetro.models import GeoPoint, Stop, Vehicle, VehicleKey, VehiclePosition, VehicleStopTime


class StoreStats(BaseModel):
    """Row counts reported by ``pycapmetro stats``."""

    model_config = ConfigDict(frozen=True)

    positions: int = 0
    vehicles: int = 0
    stops: int = 0
    stop_times: int = 0
    latest_position: datetime | None = None


class Store(Protocol):
    """Persistence for positions, vehicles, stops and stop-times.

    Every method except :meth:`connect` raises
    :class:`~pycapmetro.exceptions.StoreError` on failure; :meth:`connect`
    raises :class:`~pycapmetro.exceptions.StoreConnectionError`.
    """

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def insert_positions(self, batch: Sequence[VehiclePosition]) -> int: ...

    async def insert_stop_times(self, batch: Sequence[VehicleStopTime]) -> int: ...

    async def insert_stops(self, stops: Sequence[Stop]) -> int: ...

    async def insert_vehicle(self, vehicle: Vehicle) -> None: ...

    async def update_vehicle_watermark(self, vehicle_id: str, at: datetime) -> None: ...

    async def contains_vehicle(self, vehicle_id: str) -> bool: ...

    async def list_vehicles(self) -> list[Vehicle]: ...

    async def distinct_vehicle_keys(self) -> list[VehicleKey]: ...

    async def positions_since(self, vehicle_id: str, start: datetime, end: datetime) -> list[VehiclePosition]:
        """Positions of *vehicle_id* with ``start <= timestamp <= end``, oldest first."""
        ...

    async def nearest_stop(self, point: GeoPoint, max_distance: float) -> Stop | None: ...

    async def stats(self) -> StoreStats: ...
