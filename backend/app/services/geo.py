from __future__ import annotations
import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE_LAT = 111_000.0
# cos(lat) floor so the longitude span stays finite at the poles
_MIN_COS = 1e-6


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(lat: float, lng: float, radius_m: float) -> BoundingBox:
    """
    Axis-aligned box around (lat, lng) used to pre-filter candidates in SQL.

    The box over-approximates the circle; callers rank and cut by
    `haversine_m` afterwards.
    """
    lat_deg = radius_m / METERS_PER_DEGREE_LAT
    cos_lat = max(abs(math.cos(math.radians(lat))), _MIN_COS)
    lng_deg = radius_m / (METERS_PER_DEGREE_LAT * cos_lat)
    return BoundingBox(
        min_lat=lat - lat_deg,
        max_lat=lat + lat_deg,
        min_lng=lng - lng_deg,
        max_lng=lng + lng_deg,
    )


def validate_coordinates(lat: float, lng: float) -> bool:
    return (
        not math.isnan(lat) and not math.isnan(lng)
        and -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
    )
