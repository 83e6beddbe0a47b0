"""Custom exception hierarchy for pycapmetro."""

from __future__ import annotations


class CapMetroError(Exception):
    """Base exception for all pycapmetro errors."""


class CapMetroConfigError(CapMetroError):
    """Invalid or missing configuration."""


class FeedError(CapMetroError):
    """Vehicle position feed failure."""


class FeedTransportError(FeedError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        route: str = "",
        status_code: int | None = None,
    ) -> None:
        self.route = route
        self.status_code = status_code
        super().__init__(message)


class StoreError(CapMetroError):
    """A store read or write failed."""


class StoreConnectionError(StoreError):
    """The store could not be reached or initialised.

    Raised only from :meth:`pycapmetro.store.Store.connect`; the collector
    cannot do any work without a store, so callers treat this as fatal.
    """
