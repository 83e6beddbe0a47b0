"""Persistence layer.

:func:`open_store` picks an implementation from a store URL:
``memory://`` gives a :class:`MemoryStore`, anything else is handed to
SQLAlchemy through :class:`SqlStore`.
"""

from pycapmetro.store.base import Store, StoreStats
from pycapmetro.store.memory import MemoryStore
from pycapmetro.store.spatial import StopIndex, haversine
from pycapmetro.store.sql import SqlStore

MEMORY_URL = "memory://"


def open_store(url: str) -> Store:
    """Build (but do not connect) the store for *url*."""
    if url == MEMORY_URL:
        return MemoryStore()
    return SqlStore(url)


__all__ = [
    "MEMORY_URL",
    "MemoryStore",
    "SqlStore",
    "StopIndex",
    "Store",
    "StoreStats",
    "haversine",
    "open_store",
]
