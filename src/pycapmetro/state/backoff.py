"""Empty-response tracking and the extended-sleep decision.

This module contains no I/O; :mod:`pycapmetro.collector` feeds it poll
outcomes and asks it how long to sleep.
"""

from __future__ import annotations

from collections.abc import Iterable

from pycapmetro._constants import INITIAL_RETRIES
from pycapmetro.state.events import PollOutcome


class EmptyResponseTracker:
    """Counts consecutive empty responses for one route.

    Only the second and later empty responses in a row are counted, so a
    single dropped poll never pushes the fleet towards the extended sleep.
    A successful poll clears the streak but keeps the count.

    The counter starts at :data:`~pycapmetro._constants.INITIAL_RETRIES`
    rather than zero, so a cold start needs the same number of counted
    empty responses on every route before the fleet can go to sleep.
    """

    def __init__(self, *, retries: int = INITIAL_RETRIES) -> None:
        self.retries = retries
        self.was_empty = False

    def __repr__(self) -> str:
        return f"EmptyResponseTracker(retries={self.retries}, was_empty={self.was_empty})"

    def record(self, outcome: PollOutcome) -> None:
        if not outcome.is_empty:
            self.was_empty = False
            return
        if self.was_empty:
            self.retries += 1
        self.was_empty = True

    def reset(self) -> None:
        self.retries = 0


def routes_are_sleeping(trackers: Iterable[EmptyResponseTracker], max_retries: int) -> bool:
    """Whether every route reached *max_retries* counted empty responses.

    An empty collection is never asleep. The collector cannot reach that
    case: :class:`~pycapmetro.config.CapMetroConfig` rejects an empty
    route list.
    """
    seen = False
    for tracker in trackers:
        seen = True
        if tracker.retries < max_retries:
            return False
    return seen
