"""SQL store built on SQLAlchemy Core.

Blocking SQLAlchemy calls run on a dedicated single-thread executor, so
database access is serialized and a sqlite connection never changes
threads. The stop catalog is small and static; it is loaded into a
:class:`~pycapmetro.store.spatial.StopIndex` at connect time and the
nearest-stop query is answered from memory.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from pycapmetro.exceptions import StoreConnectionError, StoreError
from pycapmetro.models import GeoPoint, Stop, Vehicle, VehicleKey, VehiclePosition, VehicleStopTime
from pycapmetro.store.base import StoreStats
from pycapmetro.store.spatial import StopIndex

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class UtcDateTime(sa.TypeDecorator[datetime]):
    """Stores datetimes as naive UTC and returns them UTC-aware."""

    impl = sa.DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: sa.Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: sa.Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


metadata = sa.MetaData()

vehicle_position = sa.Table(
    "vehicle_position",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("vehicle_id", sa.String(64), nullable=False),
    sa.Column("route", sa.String(64), nullable=False),
    sa.Column("route_id", sa.String(64), nullable=False, default=""),
    sa.Column("trip_id", sa.String(128), nullable=False, default=""),
    sa.Column("latitude", sa.Float, nullable=False),
    sa.Column("longitude", sa.Float, nullable=False),
    sa.Column("timestamp", UtcDateTime, nullable=False),
    sa.Index("vehicle_id_timestamp", "vehicle_id", "timestamp"),
)

vehicles = sa.Table(
    "vehicles",
    metadata,
    sa.Column("vehicle_id", sa.String(64), primary_key=True),
    sa.Column("route", sa.String(64), nullable=False),
    sa.Column("route_id", sa.String(64), nullable=False, default=""),
    sa.Column("trip_id", sa.String(128), nullable=False, default=""),
    sa.Column("last_analyzed", UtcDateTime, nullable=False),
)

stops = sa.Table(
    "stops",
    metadata,
    sa.Column("stop_id", sa.String(64), primary_key=True),
    sa.Column("name", sa.String(255), nullable=False, default=""),
    sa.Column("latitude", sa.Float, nullable=False),
    sa.Column("longitude", sa.Float, nullable=False),
)

vehicle_stop_times = sa.Table(
    "vehicle_stop_times",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("vehicle_id", sa.String(64), nullable=False),
    sa.Column("route", sa.String(64), nullable=False),
    sa.Column("trip_id", sa.String(128), nullable=False, default=""),
    sa.Column("stop_id", sa.String(64), nullable=False),
    sa.Column("timestamp", UtcDateTime, nullable=False),
    sa.Index("vehicle_stop_times_vehicle_id_timestamp", "vehicle_id", "timestamp"),
)


def _position_row(position: VehiclePosition) -> dict[str, Any]:
    return {
        "vehicle_id": position.vehicle_id,
        "route": position.route,
        "route_id": position.route_id,
        "trip_id": position.trip_id,
        "latitude": position.location.latitude,
        "longitude": position.location.longitude,
        "timestamp": position.timestamp,
    }


def _position_from_row(row: sa.Row[Any]) -> VehiclePosition:
    return VehiclePosition(
        vehicle_id=row.vehicle_id,
        route=row.route,
        route_id=row.route_id,
        trip_id=row.trip_id,
        location=GeoPoint(latitude=row.latitude, longitude=row.longitude),
        timestamp=row.timestamp,
    )


def _stop_from_row(row: sa.Row[Any]) -> Stop:
    return Stop(
        stop_id=row.stop_id,
        name=row.name,
        location=GeoPoint(latitude=row.latitude, longitude=row.longitude),
    )


class SqlStore:
    """A :class:`~pycapmetro.store.base.Store` on any SQLAlchemy database.

    Usage::

        store = SqlStore("sqlite:///capmetro.db")
        await store.connect()
        try:
            ...
        finally:
            await store.close()
    """

    def __init__(self, url: str, *, engine_options: dict[str, Any] | None = None) -> None:
        self._url = url
        self._engine_options = engine_options or {}
        self._engine: Engine | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._stops = StopIndex()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the engine, ensure the schema exists and load the stop catalog."""
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pycapmetro-store")
        try:
            await self._submit(self._connect_sync)
        except (SQLAlchemyError, ImportError) as exc:
            await self.close()
            raise StoreConnectionError(f"Cannot open store: {exc}") from exc
        _logger.debug("Store ready with %d stops", len(self._stops))

    def _connect_sync(self) -> None:
        self._engine = sa.create_engine(self._url, **self._engine_options)
        metadata.create_all(self._engine)
        with self._engine.connect() as conn:
            rows = conn.execute(sa.select(stops)).all()
        self._stops.extend(_stop_from_row(row) for row in rows)

    async def close(self) -> None:
        executor = self._executor
        if executor is None:
            return
        if self._engine is not None:
            await self._submit(self._engine.dispose)
            self._engine = None
        self._executor = None
        executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _submit(self, fn: Callable[..., T], *args: Any) -> T:
        if self._executor is None:
            raise StoreError("Store not connected. Call 'await store.connect()' first")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run *fn(engine, *args)* on the store thread, mapping driver errors."""
        try:
            return await self._submit(fn, self._require_engine(), *args)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise StoreError("Store not connected. Call 'await store.connect()' first")
        return self._engine

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_positions(self, batch: Sequence[VehiclePosition]) -> int:
        if not batch:
            return 0
        rows = [_position_row(position) for position in batch]
        await self._run(_insert_many, vehicle_position, rows)
        return len(rows)

    async def insert_stop_times(self, batch: Sequence[VehicleStopTime]) -> int:
        if not batch:
            return 0
        rows = [stop_time.model_dump() for stop_time in batch]
        await self._run(_insert_many, vehicle_stop_times, rows)
        return len(rows)

    async def insert_stops(self, batch: Sequence[Stop]) -> int:
        """Insert or replace stops in the catalog."""
        if not batch:
            return 0
        rows = [
            {
                "stop_id": stop.stop_id,
                "name": stop.name,
                "latitude": stop.location.latitude,
                "longitude": stop.location.longitude,
            }
            for stop in batch
        ]
        await self._run(_replace_stops, rows)
        self._stops.extend(batch)
        return len(rows)

    async def insert_vehicle(self, vehicle: Vehicle) -> None:
        await self._run(_insert_many, vehicles, [vehicle.model_dump()])

    async def update_vehicle_watermark(self, vehicle_id: str, at: datetime) -> None:
        updated = await self._run(_update_watermark, vehicle_id, at)
        if not updated:
            raise StoreError(f"unknown vehicle {vehicle_id}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def contains_vehicle(self, vehicle_id: str) -> bool:
        query = sa.select(vehicles.c.vehicle_id).where(vehicles.c.vehicle_id == vehicle_id)
        rows = await self._run(_fetch_all, query)
        return bool(rows)

    async def list_vehicles(self) -> list[Vehicle]:
        rows = await self._run(_fetch_all, sa.select(vehicles).order_by(vehicles.c.vehicle_id))
        return [Vehicle.model_validate(row._asdict()) for row in rows]

    async def distinct_vehicle_keys(self) -> list[VehicleKey]:
        query = sa.select(
            vehicle_position.c.vehicle_id,
            vehicle_position.c.route,
            vehicle_position.c.route_id,
            vehicle_position.c.trip_id,
        ).distinct()
        rows = await self._run(_fetch_all, query)
        return [VehicleKey.model_validate(row._asdict()) for row in rows]

    async def positions_since(self, vehicle_id: str, start: datetime, end: datetime) -> list[VehiclePosition]:
        query = (
            sa.select(vehicle_position)
            .where(
                vehicle_position.c.vehicle_id == vehicle_id,
                vehicle_position.c.timestamp >= start,
                vehicle_position.c.timestamp <= end,
            )
            .order_by(vehicle_position.c.timestamp, vehicle_position.c.id)
        )
        rows = await self._run(_fetch_all, query)
        return [_position_from_row(row) for row in rows]

    async def nearest_stop(self, point: GeoPoint, max_distance: float) -> Stop | None:
        return self._stops.nearest(point, max_distance)

    async def stats(self) -> StoreStats:
        counts = await self._run(_stats)
        return StoreStats(**counts)


def _insert_many(engine: Engine, table: sa.Table, rows: list[dict[str, Any]]) -> None:
    with engine.begin() as conn:
        conn.execute(sa.insert(table), rows)


def _replace_stops(engine: Engine, rows: list[dict[str, Any]]) -> None:
    with engine.begin() as conn:
        conn.execute(sa.delete(stops).where(stops.c.stop_id.in_([row["stop_id"] for row in rows])))
        conn.execute(sa.insert(stops), rows)


def _update_watermark(engine: Engine, vehicle_id: str, at: datetime) -> int:
    with engine.begin() as conn:
        result = conn.execute(
            sa.update(vehicles).where(vehicles.c.vehicle_id == vehicle_id).values(last_analyzed=at),
        )
        return result.rowcount


def _fetch_all(engine: Engine, query: sa.Select[Any]) -> list[sa.Row[Any]]:
    with engine.connect() as conn:
        return list(conn.execute(query).all())


def _stats(engine: Engine) -> dict[str, Any]:
    def count(table: sa.Table) -> int:
        return conn.execute(sa.select(sa.func.count()).select_from(table)).scalar_one()

    with engine.connect() as conn:
        return {
            "positions": count(vehicle_position),
            "vehicles": count(vehicles),
            "stops": count(stops),
            "stop_times": count(vehicle_stop_times),
            "latest_position": conn.execute(sa.select(sa.func.max(vehicle_position.c.timestamp))).scalar_one(),
        }
