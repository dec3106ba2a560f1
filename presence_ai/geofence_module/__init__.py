from .distance import EARTH_RADIUS_M, haversine_meters
from .monitor import CampusConfig, GeofenceEvent, GeofenceMonitor, GeofenceState

__all__ = [
    "EARTH_RADIUS_M",
    "CampusConfig",
    "GeofenceEvent",
    "GeofenceMonitor",
    "GeofenceState",
    "haversine_meters",
]
