"""Record models for positions, vehicles and stops."""

from pycapmetro.models._base import CapMetroBaseModel, GeoPoint, UtcTimestamp
from pycapmetro.models.position import VehiclePosition
from pycapmetro.models.stop import Stop, VehicleStopTime
from pycapmetro.models.vehicle import Vehicle, VehicleKey

__all__ = [
    "CapMetroBaseModel",
    "GeoPoint",
    "Stop",
    "UtcTimestamp",
    "Vehicle",
    "VehicleKey",
    "VehiclePosition",
    "VehicleStopTime",
]
