from __future__ import annotations

from math import asin, cos, radians, sin, sqrt

from landmarkquest.domain.models import Coordinate

"""
Geospatial helpers.

Visit detection only needs point-to-point distances over a few hundred landmarks,
so we keep a single haversine function here instead of a GIS dependency.
"""

EARTH_RADIUS_M = 6_371_000


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates (haversine)."""
    lat1 = radians(a.latitude)
    lon1 = radians(a.longitude)
    lat2 = radians(b.latitude)
    lon2 = radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push `h` a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))
