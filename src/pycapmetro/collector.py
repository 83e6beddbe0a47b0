"""The collector control loop.

Each iteration polls every route concurrently, derives stop-times for all
known vehicles and, on a coarse schedule, discovers new vehicles. All of
these run as sibling tasks joined by one barrier; then the collector
decides how long to sleep based on how quiet the feed has been.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp

from pycapmetro._redact import redact_for_log
from pycapmetro._transport import FeedReader, HttpFeedReader
from pycapmetro.analysis.stop_times import StopTimeSummary, make_vehicle_stop_times
from pycapmetro.config import CapMetroConfig
from pycapmetro.exceptions import CapMetroConfigError, StoreError
from pycapmetro.ingestion.positions import poll_route
from pycapmetro.ingestion.vehicles import discover_vehicles
from pycapmetro.state.events import RoutePollResult
from pycapmetro.state.routes import FleetState
from pycapmetro.store import Store, open_store

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class IterationReport:
    """What happened in one collector iteration."""

    polls: list[RoutePollResult] = field(default_factory=list)
    stop_times: StopTimeSummary | None = None
    discovered: int | None = None
    sleep: float = 0.0


class Collector:
    """Drives polling, stop-time derivation and vehicle discovery.

    Usage::

        collector = Collector(config, feed=reader, store=store)
        await collector.run_forever()
    """

    def __init__(
        self,
        config: CapMetroConfig,
        *,
        feed: FeedReader,
        store: Store,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._feed = feed
        self._store = store
        self._clock = clock
        self._sleep = sleep
        self._fleet = FleetState(
            config.routes,
            max_retries=config.max_retries,
            normal_sleep=config.normal_sleep,
            extended_sleep=config.extended_sleep,
        )
        self._next_vehicle_check: datetime | None = None

    @property
    def fleet(self) -> FleetState:
        return self._fleet

    def _vehicle_check_due(self, now: datetime) -> bool:
        if self._next_vehicle_check is not None and now < self._next_vehicle_check:
            return False
        self._next_vehicle_check = now + timedelta(seconds=self._config.vehicle_check_interval)
        _logger.debug("Next check for new vehicles scheduled at %s", self._next_vehicle_check.isoformat())
        return True

    async def _discover(self) -> int | None:
        try:
            return await discover_vehicles(self._store, clock=self._clock)
        except StoreError as exc:
            _logger.error("Checking for new vehicles failed: %s", exc)
            return None

    async def _stop_times(self) -> StopTimeSummary | None:
        try:
            return await make_vehicle_stop_times(
                self._store,
                max_distance=self._config.max_distance,
                clock=self._clock,
            )
        except StoreError as exc:
            _logger.error("Making stop times failed: %s", exc)
            return None

    async def run_iteration(self) -> IterationReport:
        """Run one iteration and return its report, including the next sleep."""
        report = IterationReport()
        routes = list(self._fleet)

        aws: list[Awaitable[Any]] = [poll_route(state, feed=self._feed, store=self._store) for state in routes]
        aws.append(self._stop_times())
        discover = self._vehicle_check_due(self._clock())
        if discover:
            aws.append(self._discover())

        results = await asyncio.gather(*aws, return_exceptions=True)

        for state, result in zip(routes, results[: len(routes)], strict=True):
            if isinstance(result, BaseException):
                _logger.error("Polling route %s crashed", state.route, exc_info=result)
                continue
            report.polls.append(result)

        tail = results[len(routes) :]
        for result in tail:
            if isinstance(result, BaseException):
                _logger.error("Collector task crashed", exc_info=result)
        if not isinstance(tail[0], BaseException):
            report.stop_times = tail[0]
        if discover and not isinstance(tail[1], BaseException):
            report.discovered = tail[1]

        report.sleep = self._fleet.next_sleep()
        return report

    async def run_forever(self) -> None:
        """Iterate until cancelled. Steady-state errors never end the loop."""
        _logger.info("Collector starting for routes %s", ", ".join(self._config.routes))
        while True:
            try:
                report = await self.run_iteration()
                duration = report.sleep
            except Exception:
                _logger.exception("Collector iteration failed")
                duration = self._config.normal_sleep
            await self._sleep(duration)
            _logger.debug("Wake up")


async def run(config: CapMetroConfig) -> None:
    """Open the store and the feed session and run the collector forever.

    Raises
    ------
    CapMetroConfigError
        If no feed URL is configured.
    StoreConnectionError
        If the store cannot be opened.
    """
    if not config.feed_url:
        raise CapMetroConfigError("No feed URL configured (set CMDATA_FEED_URL or pass --feed-url)")

    _logger.debug("Config: %s", redact_for_log(config))

    store = open_store(config.store_url)
    await store.connect()
    _logger.info("Connected to store %s", redact_for_log(config.store_url))
    try:
        timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as http_session:
            feed = HttpFeedReader(config.feed_url, http_session)
            await Collector(config, feed=feed, store=store).run_forever()
    finally:
        await store.close()
