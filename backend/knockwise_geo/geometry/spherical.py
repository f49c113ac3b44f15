"""Spherical measurements on the Google Maps sphere (radius 6378137 m)"""
import math
from typing import Sequence

from pyproj import Geod

from ..models import Coordinate
from .polygon import to_shape

EARTH_RADIUS_M = 6378137.0

SPHERE = Geod(a=EARTH_RADIUS_M, f=0)


def compute_area(path: Sequence[Coordinate], geod: Geod = SPHERE) -> float:
    """Area in square metres of a (lng, lat) path, whatever its orientation"""
    if len({tuple(c) for c in path}) < 3:
        return 0.0
    area, _ = geod.geometry_area_perimeter(to_shape(path))
    return abs(float(area))


def compute_distance_between(a: Coordinate, b: Coordinate, radius: float = EARTH_RADIUS_M) -> float:
    """Great-circle (haversine) distance in metres between two (lng, lat) points"""
    lng1, lat1 = map(math.radians, a)
    lng2, lat2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * radius * math.asin(math.sqrt(h))
