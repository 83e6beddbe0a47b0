"""Route polling: fetch, classify, deduplicate, store.

One call of :func:`poll_route` is one route's share of a collector
iteration. It only touches the :class:`~pycapmetro.state.routes.RouteState`
it is given, so polls for different routes can run concurrently.
"""

from __future__ import annotations

import logging

from pycapmetro._transport import FeedReader
from pycapmetro.exceptions import FeedError, StoreError
from pycapmetro.state.events import PollOutcome, RoutePollResult
from pycapmetro.state.routes import RouteState
from pycapmetro.store.base import Store

_logger = logging.getLogger(__name__)


async def poll_route(state: RouteState, *, feed: FeedReader, store: Store) -> RoutePollResult:
    """Poll the feed once for ``state.route`` and record new positions.

    Any fetch failure and every empty response is recorded on the route's
    empty-response tracker. A store failure is logged and reported in the
    result; the positions it concerned will be accepted again next poll.
    """
    route = state.route

    try:
        positions = await feed.fetch(route)
    except FeedError as exc:
        state.tracker.record(PollOutcome.ERROR)
        _logger.warning("Fetching route %s failed: %s", route, exc)
        return RoutePollResult(route=route, outcome=PollOutcome.ERROR, error=str(exc))
    except Exception as exc:
        state.tracker.record(PollOutcome.ERROR)
        _logger.error("Unexpected error fetching route %s", route, exc_info=exc)
        return RoutePollResult(route=route, outcome=PollOutcome.ERROR, error=repr(exc))

    if not positions:
        state.tracker.record(PollOutcome.EMPTY)
        _logger.info("No vehicles in response for route %s", route)
        return RoutePollResult(route=route, outcome=PollOutcome.EMPTY)

    state.tracker.record(PollOutcome.SUCCESS)
    updated = state.dedupe.filter(positions)
    for position in updated:
        _logger.debug("Vehicle %s updated at %s", position.vehicle_id, position.timestamp.isoformat())

    if not updated:
        _logger.debug("No new vehicle positions to record for route %s", route)
        return RoutePollResult(route=route, outcome=PollOutcome.SUCCESS, received=len(positions))

    try:
        await store.insert_positions(updated)
    except StoreError as exc:
        state.dedupe.forget(updated)
        _logger.error("Storing %d positions for route %s failed: %s", len(updated), route, exc)
        return RoutePollResult(
            route=route,
            outcome=PollOutcome.SUCCESS,
            received=len(positions),
            accepted=len(updated),
            error=str(exc),
        )

    _logger.info("Recorded %d vehicle positions for route %s", len(updated), route)
    return RoutePollResult(
        route=route,
        outcome=PollOutcome.SUCCESS,
        received=len(positions),
        accepted=len(updated),
        stored=True,
    )
