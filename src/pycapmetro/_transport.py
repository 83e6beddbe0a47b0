"""HTTP access to the vehicle position feed."""

from __future__ import annotations

import json
import logging
from typing import Protocol

import aiohttp

from pycapmetro._constants import USER_AGENT
from pycapmetro.exceptions import FeedTransportError
from pycapmetro.ingestion.feed import parse_feed_payload
from pycapmetro.models import VehiclePosition

_logger = logging.getLogger(__name__)


class FeedReader(Protocol):
    """Structural feed interface used by the collector.

    ``fetch`` returns an empty list when the feed has nothing for the
    route and raises :class:`~pycapmetro.exceptions.FeedTransportError`
    when the feed could not be read.
    """

    async def fetch(self, route: str) -> list[VehiclePosition]:
        ...


class HttpFeedReader:
    """Reads positions from a JSON feed over HTTP.

    *feed_url* is a template; ``{route}`` is replaced on every request.
    """

    def __init__(self, feed_url: str, http_session: aiohttp.ClientSession) -> None:
        self._feed_url = feed_url
        self._http = http_session

    async def fetch(self, route: str) -> list[VehiclePosition]:
        url = self._feed_url.format(route=route)
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise FeedTransportError(
                        f"HTTP {resp.status} for route {route}: {text[:200]}",
                        route=route,
                        status_code=resp.status,
                    )
        except FeedTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise FeedTransportError(f"Request for route {route} failed: {exc!r}", route=route) from exc
        except UnicodeDecodeError as exc:
            raise FeedTransportError(f"Undecodable body for route {route}: {exc}", route=route) from exc

        if not text.strip():
            return []

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FeedTransportError(f"Invalid JSON for route {route}: {text[:200]}", route=route) from exc

        return parse_feed_payload(route, payload)
