from __future__ import annotations
from math import asin, cos, radians, sin, sqrt

"""
Geospatial helpers.

We keep a tiny geometry layer here so adapters can compute POI distances and
cache/session keys without pulling in heavier GIS dependencies.
"""


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute great-circle distance in meters between two points."""
    r = 6_371_000
    phi1 = radians(lat1)
    phi2 = radians(lat2)

    dlat = phi2 - phi1
    dlon = radians(lon2) - radians(lon1)

    h = sin(dlat / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlon / 2) ** 2
    return 2 * r * asin(sqrt(h))


def coordinate_key(lat: float, lon: float, precision: int = 4) -> str:
    """Stable `lat_lon` key with both values rounded to `precision` decimals."""
    return f"{lat:.{precision}f}_{lon:.{precision}f}"
