"""Great-circle distance and linear interpolation between coordinates.

Interpolation is a straight blend of latitude and longitude, not a geodesic.
Stops on a route are a few kilometres apart at most, so the difference from
the great-circle path is far below GPS-level precision.
"""

import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in meters."""
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.asin(math.sqrt(min(1.0, h)))


def interpolate(a: Coordinate, b: Coordinate, t: float) -> Coordinate:
    """Point at fraction t of the way from a to b. t is not clamped."""
    return Coordinate(
        lat=a.lat + (b.lat - a.lat) * t,
        lon=a.lon + (b.lon - a.lon) * t,
    )


def is_near(a: Coordinate, b: Coordinate, threshold_m: float = 200.0) -> bool:
    return distance(a, b) <= threshold_m


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180
