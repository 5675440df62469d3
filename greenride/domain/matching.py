"""
Ride Search Ranking
===================

1. **Spatial pre-filter** -- rides store the H3 cell of their origin at
   resolution 7 (~5.16 km²).  A search expands the searcher's origin cell
   into a k-ring wide enough to cover the radius; SQL only loads rides whose
   origin cell is in that ring.
2. **Exact filter** -- great-circle distance searcher-origin -> ride-origin
   and searcher-destination -> ride-destination, both ``<= radius``.
3. **Rank** -- ascending by the mean of the two distances.

Rides with malformed coordinates are skipped, never raised on.

Complexity
----------
Let N = rides that survive the SQL filters.

* Ring expansion:  O(k²)       -- k derived from the radius
* Filter + rank:   O(N log N)
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

import h3

from .distance import haversine_km, is_valid_coordinate
from .entities import Location, RideMatch


def ride_h3_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def ring_size_for_radius(radius_km: float, resolution: int = 7) -> int:
    """
    Smallest k whose k-ring around a cell covers every point within
    *radius_km* of any point in that cell.

    Two rings of slack absorb the distance between a point and its own cell
    centre plus H3's edge-length distortion.
    """
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    return math.ceil(radius_km / edge_km) + 2


def search_cells(
    lat: float,
    lng: float,
    radius_km: float,
    resolution: int = 7,
    max_ring: int = 25,
) -> Optional[list[str]]:
    """Cells to pre-filter on, or ``None`` when the ring would be too large."""
    k = ring_size_for_radius(radius_km, resolution)
    if k > max_ring:
        return None
    origin = ride_h3_cell(lat, lng, resolution)
    return list(h3.grid_disk(origin, k))


def rank_rides(
    rides: Iterable,
    origin: Location,
    destination: Location,
    radius_km: float,
) -> list[RideMatch]:
    """Filter *rides* to those within *radius_km* at both ends, nearest first."""
    matches: list[RideMatch] = []
    for ride in rides:
        if not (
            is_valid_coordinate(ride.origin_lat, ride.origin_lng)
            and is_valid_coordinate(ride.destination_lat, ride.destination_lng)
        ):
            continue

        start_d = haversine_km(
            origin.latitude, origin.longitude, ride.origin_lat, ride.origin_lng
        )
        end_d = haversine_km(
            destination.latitude,
            destination.longitude,
            ride.destination_lat,
            ride.destination_lng,
        )
        if start_d <= radius_km and end_d <= radius_km:
            matches.append(RideMatch(ride, start_d, end_d))

    matches.sort(key=lambda m: m.avg_distance_km)
    return matches
