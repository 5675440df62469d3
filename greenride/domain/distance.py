"""
Distance calculation using the Haversine formula.

This is the fallback half of the Distance Oracle: when the routing service
(see ``greenride.infrastructure.distance_oracle``) is unavailable, ride
completion and fare estimates use the great-circle distance and a constant
average speed instead.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6_371.0


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    duration_seconds: float
    source: str = "great_circle"


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def great_circle_estimate(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
    speed_kmh: float = 50.0,
) -> RouteEstimate:
    """Distance plus a travel time at a constant ``speed_kmh``."""
    distance = haversine_km(lat1, lng1, lat2, lng2)
    duration = (distance / speed_kmh) * 3600 if speed_kmh > 0 else 0.0
    return RouteEstimate(distance_km=distance, duration_seconds=duration)


def is_valid_coordinate(lat, lng) -> bool:
    """True for finite numbers inside the WGS84 lat/lng ranges."""
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return -90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0
