"""Per-vehicle timestamp deduplication."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pycapmetro.models.position import VehiclePosition


class Deduplicator:
    """Drops positions whose timestamp did not change since the last poll.

    The feed keeps reporting a vehicle's last known position until the
    vehicle sends a new one, so consecutive polls mostly repeat themselves.
    """

    def __init__(self) -> None:
        self._last_seen: dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._last_seen)

    def last_seen(self, vehicle_id: str) -> datetime | None:
        return self._last_seen.get(vehicle_id)

    def filter(self, positions: Iterable[VehiclePosition]) -> list[VehiclePosition]:
        """Return the positions whose timestamp changed, in input order.

        Every examined position overwrites the stored timestamp for its
        vehicle, but is classified against the value stored before it.
        """
        updated: list[VehiclePosition] = []
        for position in positions:
            previous = self._last_seen.get(position.vehicle_id)
            self._last_seen[position.vehicle_id] = position.timestamp
            if previous != position.timestamp:
                updated.append(position)
        return updated

    def forget(self, positions: Iterable[VehiclePosition]) -> None:
        """Drop the history of the vehicles in *positions*.

        Used when an accepted batch could not be stored, so that the same
        positions are accepted again on the next poll.
        """
        for position in positions:
            self._last_seen.pop(position.vehicle_id, None)
