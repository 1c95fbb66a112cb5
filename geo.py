from math import asin, cos, radians, sin, sqrt
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0

DEFAULT_RADIUS_KM = 50
MIN_RADIUS_KM = 1
MAX_RADIUS_KM = 100

Coordinates = Tuple[Optional[float], Optional[float]]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points given in degrees."""
    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(min(1.0, sqrt(a)))


def _complete(point: Optional[Coordinates]) -> bool:
    return point is not None and point[0] is not None and point[1] is not None


def distance_between(a: Optional[Coordinates], b: Optional[Coordinates]) -> Optional[float]:
    if not (_complete(a) and _complete(b)):
        return None
    return haversine_km(a[0], a[1], b[0], b[1])


def within_radius(user: Optional[Coordinates], store: Optional[Coordinates],
                  radius_km: float = DEFAULT_RADIUS_KM) -> bool:
    # Missing geodata never excludes a store
    distance = distance_between(user, store)
    if distance is None:
        return True
    return distance <= radius_km
