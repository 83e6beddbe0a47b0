from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from pycapmetro.collector import Collector, run
from pycapmetro.config import CapMetroConfig
from pycapmetro.exceptions import CapMetroConfigError, FeedTransportError
from pycapmetro.ingestion.feed import parse_feed_payload
from pycapmetro.models import GeoPoint, Stop, Vehicle, VehiclePosition
from pycapmetro.state.events import PollOutcome
from pycapmetro.store import MemoryStore

_T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
_STOP = Stop(stop_id="A", location=GeoPoint(latitude=30.2672, longitude=-97.7431))


def _position(vehicle_id: str, route: str = "803", seconds: int = 0) -> VehiclePosition:
    return VehiclePosition(
        vehicle_id=vehicle_id,
        route=route,
        trip_id="T1",
        location=_STOP.location,
        timestamp=_T0 + timedelta(seconds=seconds),
    )


@dataclass
class FakeFeed:
    """Serves a fixed response per route; exceptions are raised."""

    responses: dict[str, list[VehiclePosition] | Exception] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def fetch(self, route: str) -> list[VehiclePosition]:
        self.calls.append(route)
        response = self.responses.get(route, [])
        if isinstance(response, Exception):
            raise response
        return list(response)


@dataclass
class FakeClock:
    now: datetime = _T0 + timedelta(minutes=5)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _config(*routes: str, **kwargs: object) -> CapMetroConfig:
    return CapMetroConfig(feed_url="https://feed.example/{route}", routes=routes or ("803", "801"), **kwargs)


@pytest.mark.asyncio
async def test_iteration_polls_every_route() -> None:
    feed = FakeFeed({"803": [_position("V1")], "801": []})
    store = MemoryStore([_STOP])
    collector = Collector(_config(), feed=feed, store=store, clock=FakeClock())

    report = await collector.run_iteration()

    assert sorted(feed.calls) == ["801", "803"]
    outcomes = {poll.route: poll.outcome for poll in report.polls}
    assert outcomes == {"803": PollOutcome.SUCCESS, "801": PollOutcome.EMPTY}
    assert len(store.positions) == 1
    assert report.sleep == 30.0


@pytest.mark.asyncio
async def test_iteration_derives_stop_times_for_known_vehicles() -> None:
    store = MemoryStore([_STOP])
    store.vehicles["V9"] = Vehicle(vehicle_id="V9", route="803", last_analyzed=_T0 - timedelta(minutes=1))
    store.positions.append(_position("V9"))
    collector = Collector(_config("803"), feed=FakeFeed(), store=store, clock=FakeClock())

    report = await collector.run_iteration()

    assert report.stop_times is not None
    assert report.stop_times.stop_times == 1
    assert [(st.vehicle_id, st.stop_id) for st in store.stop_times] == [("V9", "A")]


@pytest.mark.asyncio
async def test_vehicle_discovery_runs_on_its_own_schedule() -> None:
    clock = FakeClock()
    collector = Collector(
        _config("803", vehicle_check_interval=3600.0),
        feed=FakeFeed(),
        store=MemoryStore(),
        clock=clock,
    )

    first = await collector.run_iteration()
    clock.advance(60)
    second = await collector.run_iteration()
    clock.advance(3600)
    third = await collector.run_iteration()

    assert first.discovered == 0
    assert second.discovered is None
    assert third.discovered == 0


@pytest.mark.asyncio
async def test_unexpected_feed_error_still_counts_towards_backoff() -> None:
    feed = FakeFeed({"803": [_position("V1")], "801": RuntimeError("boom")})
    store = MemoryStore()
    collector = Collector(_config(), feed=feed, store=store, clock=FakeClock())

    report = await collector.run_iteration()

    outcomes = {poll.route: poll.outcome for poll in report.polls}
    assert outcomes == {"803": PollOutcome.SUCCESS, "801": PollOutcome.ERROR}
    assert collector.fleet.route("801").tracker.was_empty is True
    assert len(store.positions) == 1
    assert report.sleep == 30.0


class CrashingStore(MemoryStore):
    async def list_vehicles(self) -> list[Vehicle]:
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_crashed_task_does_not_stop_siblings() -> None:
    store = CrashingStore()
    collector = Collector(_config("803"), feed=FakeFeed({"803": [_position("V1")]}), store=store, clock=FakeClock())

    report = await collector.run_iteration()

    assert [poll.route for poll in report.polls] == ["803"]
    assert len(store.positions) == 1
    assert report.stop_times is None
    assert report.sleep == 30.0


@pytest.mark.asyncio
async def test_bad_feed_timestamp_drops_only_that_entry() -> None:
    collector = Collector(_config("803"), feed=_PayloadFeed(), store=MemoryStore(), clock=FakeClock())

    report = await collector.run_iteration()

    assert [(poll.outcome, poll.accepted) for poll in report.polls] == [(PollOutcome.SUCCESS, 1)]
    assert collector.fleet.route("803").tracker.was_empty is False


class _PayloadFeed:
    """Parses a raw vendor payload the way the HTTP reader does."""

    async def fetch(self, route: str) -> list[VehiclePosition]:
        payload = [
            {"vehicleId": "1", "lat": 30.27, "lon": -97.74, "timestamp": "inf"},
            {"vehicleId": "2", "lat": 30.27, "lon": -97.74, "timestamp": 1767268800},
        ]
        return parse_feed_payload(route, payload)


@pytest.mark.asyncio
async def test_extended_sleep_after_every_route_goes_quiet() -> None:
    feed = FakeFeed({"803": [], "801": FeedTransportError("HTTP 503", route="801", status_code=503)})
    collector = Collector(_config(), feed=feed, store=MemoryStore(), clock=FakeClock())

    sleeps = [(await collector.run_iteration()).sleep for _ in range(4)]

    assert sleeps == [30.0, 30.0, 600.0, 30.0]
    assert [state.tracker.retries for state in collector.fleet] == [1, 1]


@pytest.mark.asyncio
async def test_run_forever_sleeps_between_iterations() -> None:
    slept: list[float] = []

    async def fake_sleep(duration: float) -> None:
        slept.append(duration)
        if len(slept) == 2:
            raise asyncio.CancelledError

    collector = Collector(_config(), feed=FakeFeed(), store=MemoryStore(), clock=FakeClock(), sleep=fake_sleep)

    with pytest.raises(asyncio.CancelledError):
        await collector.run_forever()

    assert slept == [30.0, 30.0]


@pytest.mark.asyncio
async def test_run_forever_survives_failed_iteration(monkeypatch: pytest.MonkeyPatch) -> None:
    slept: list[float] = []

    async def fake_sleep(duration: float) -> None:
        slept.append(duration)
        raise asyncio.CancelledError

    async def broken_iteration() -> None:
        raise RuntimeError("boom")

    collector = Collector(
        _config(normal_sleep=5.0),
        feed=FakeFeed(),
        store=MemoryStore(),
        clock=FakeClock(),
        sleep=fake_sleep,
    )
    monkeypatch.setattr(collector, "run_iteration", broken_iteration)

    with pytest.raises(asyncio.CancelledError):
        await collector.run_forever()

    assert slept == [5.0]


@pytest.mark.asyncio
async def test_run_requires_feed_url() -> None:
    with pytest.raises(CapMetroConfigError):
        await run(CapMetroConfig(store_url="memory://"))
