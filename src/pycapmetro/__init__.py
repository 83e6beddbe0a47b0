"""pycapmetro - Transit vehicle position collector and stop-time builder."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycapmetro")
except PackageNotFoundError:
    __version__ = "0+local"
from pycapmetro.collector import Collector, IterationReport
from pycapmetro.config import CapMetroConfig
from pycapmetro.exceptions import (
    CapMetroConfigError,
    CapMetroError,
    FeedError,
    FeedTransportError,
    StoreConnectionError,
    StoreError,
)
from pycapmetro.models import (
    GeoPoint,
    Stop,
    Vehicle,
    VehicleKey,
    VehiclePosition,
    VehicleStopTime,
)

__all__ = [
    "__version__",
    "CapMetroConfig",
    "CapMetroConfigError",
    "CapMetroError",
    "Collector",
    "FeedError",
    "FeedTransportError",
    "GeoPoint",
    "IterationReport",
    "Stop",
    "StoreConnectionError",
    "StoreError",
    "Vehicle",
    "VehicleKey",
    "VehiclePosition",
    "VehicleStopTime",
]
