"""Grid index over the static stop catalog.

Stops are bucketed into square lat/lon cells of roughly ``cell_size``
metres. A nearest-stop query only visits the cells overlapping the
bounding box of the search radius and ranks candidates by great-circle
distance.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable

from pycapmetro._constants import EARTH_RADIUS_M
from pycapmetro.models import GeoPoint, Stop

_METRES_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0
DEFAULT_CELL_SIZE = 250.0


def haversine(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in metres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    h = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


class StopIndex:
    """Answers "nearest stop within *max_distance* metres" queries."""

    def __init__(self, stops: Iterable[Stop] = (), *, cell_size: float = DEFAULT_CELL_SIZE) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_deg = cell_size / _METRES_PER_DEGREE
        self._cells: dict[tuple[int, int], dict[str, Stop]] = defaultdict(dict)
        self._stops: dict[str, Stop] = {}
        self.extend(stops)

    def __len__(self) -> int:
        return len(self._stops)

    def __contains__(self, stop_id: object) -> bool:
        return stop_id in self._stops

    def _cell(self, latitude: float, longitude: float) -> tuple[int, int]:
        return math.floor(latitude / self._cell_deg), math.floor(longitude / self._cell_deg)

    def add(self, stop: Stop) -> None:
        """Add or replace a stop."""
        previous = self._stops.get(stop.stop_id)
        if previous is not None:
            self._cells[self._cell(*previous.location.as_tuple())].pop(stop.stop_id, None)
        self._stops[stop.stop_id] = stop
        self._cells[self._cell(*stop.location.as_tuple())][stop.stop_id] = stop

    def extend(self, stops: Iterable[Stop]) -> None:
        for stop in stops:
            self.add(stop)

    def _candidates(self, point: GeoPoint, max_distance: float) -> Iterable[Stop]:
        dlat = max_distance / _METRES_PER_DEGREE
        cos_lat = math.cos(math.radians(point.latitude))
        if cos_lat < 1e-6 or dlat / cos_lat >= 180.0:
            # Search box covers every longitude (polar or huge radius).
            return self._stops.values()
        dlon = dlat / cos_lat
        row_lo, col_lo = self._cell(point.latitude - dlat, point.longitude - dlon)
        row_hi, col_hi = self._cell(point.latitude + dlat, point.longitude + dlon)
        found: list[Stop] = []
        for row in range(row_lo, row_hi + 1):
            for col in range(col_lo, col_hi + 1):
                cell = self._cells.get((row, col))
                if cell:
                    found.extend(cell.values())
        return found

    def nearest(self, point: GeoPoint, max_distance: float) -> Stop | None:
        """Return the closest stop no farther than *max_distance* metres.

        Ties are broken by stop id so results are deterministic.
        """
        best: Stop | None = None
        best_key: tuple[float, str] | None = None
        for stop in self._candidates(point, max_distance):
            distance = haversine(point, stop.location)
            if distance > max_distance:
                continue
            key = (distance, stop.stop_id)
            if best_key is None or key < best_key:
                best, best_key = stop, key
        return best
