"""Per-route state ownership."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from pycapmetro.state.backoff import EmptyResponseTracker, routes_are_sleeping
from pycapmetro.state.dedupe import Deduplicator

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RouteState:
    """Everything one route's poll task is allowed to mutate."""

    route: str
    dedupe: Deduplicator = field(default_factory=Deduplicator)
    tracker: EmptyResponseTracker = field(default_factory=EmptyResponseTracker)


class FleetState:
    """Owns the :class:`RouteState` of every configured route.

    Route tasks receive their own :class:`RouteState`; the fleet-wide sleep
    decision is taken here after all of them have finished.
    """

    def __init__(
        self,
        routes: Iterable[str],
        *,
        max_retries: int,
        normal_sleep: float,
        extended_sleep: float,
    ) -> None:
        self._routes: dict[str, RouteState] = {route: RouteState(route) for route in routes}
        self._max_retries = max_retries
        self._normal_sleep = normal_sleep
        self._extended_sleep = extended_sleep

    def __iter__(self) -> Iterator[RouteState]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)

    def route(self, route: str) -> RouteState:
        return self._routes[route]

    def is_sleeping(self) -> bool:
        return routes_are_sleeping((state.tracker for state in self), self._max_retries)

    def next_sleep(self) -> float:
        """Decide the next sleep duration in seconds.

        Resets every retry counter when the extended sleep is chosen.
        """
        _logger.debug("Empty response trackers: %s", {state.route: state.tracker for state in self})
        if self.is_sleeping():
            for state in self:
                state.tracker.reset()
            _logger.info("All routes inactive; sleeping for extended duration (%.0fs)", self._extended_sleep)
            return self._extended_sleep
        _logger.debug("Sleeping for normal duration (%.0fs)", self._normal_sleep)
        return self._normal_sleep
