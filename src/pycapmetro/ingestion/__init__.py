"""Ingestion layer.

This package contains the code that pulls vehicle positions from the feed,
filters them and hands them to the store, plus discovery of new vehicles
from what has been recorded.
"""

__all__: list[str] = []
