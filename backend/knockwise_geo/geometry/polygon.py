"""Planar polygon predicates over (lng, lat) rings"""
import logging
import math
from typing import Iterable, Sequence

try:
    from shapely.geometry import Point, Polygon
    SHAPELY_AVAILABLE = True
except ImportError:
    SHAPELY_AVAILABLE = False

from ..errors import GeometryUnavailable, InvalidPolygonError
from ..models import Bounds, Coordinate, Ring

logger = logging.getLogger(__name__)

# Kilometres per degree of latitude used by the flat-earth area estimate
KM_PER_DEGREE = 111


def require_geometry():
    """Raise GeometryUnavailable when shapely cannot be imported"""
    if not SHAPELY_AVAILABLE:
        raise GeometryUnavailable("shapely is not installed; polygon containment is unavailable")


def is_closed(ring: Sequence[Coordinate]) -> bool:
    return len(ring) > 0 and tuple(ring[0]) == tuple(ring[-1])


def close_ring(ring: Iterable[Coordinate]) -> Ring:
    """Return a copy of the ring with the first vertex repeated at the end if missing"""
    coords = [(float(lng), float(lat)) for lng, lat in ring]
    if coords and not is_closed(coords):
        coords.append(coords[0])
    return coords


def validate_ring(ring: Sequence[Coordinate]) -> Ring:
    """
    Check that a ring is a closed polygon with at least three distinct vertices.

    Raises InvalidPolygonError otherwise.
    """
    if len(ring) < 4:
        raise InvalidPolygonError(f"Polygon needs at least 4 points (3 distinct + closing), got {len(ring)}")
    if not is_closed(ring):
        raise InvalidPolygonError("Polygon ring is not closed: last point must equal first")
    if len({tuple(c) for c in ring[:-1]}) < 3:
        raise InvalidPolygonError("Polygon needs at least 3 distinct vertices")
    return [(float(lng), float(lat)) for lng, lat in ring]


def to_shape(polygon: Sequence[Coordinate]) -> "Polygon":
    require_geometry()
    return Polygon(polygon)


def point_in_polygon(point: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """
    Containment test for a (lng, lat) point.

    Points on the boundary count as inside, so a polygon overlaps an
    identical copy of itself.
    """
    shape = polygon if SHAPELY_AVAILABLE and isinstance(polygon, Polygon) else to_shape(polygon)
    return shape.covers(Point(point))


def polygons_overlap(a: Sequence[Coordinate], b: Sequence[Coordinate]) -> bool:
    """
    True when any vertex of `a` lies inside `b` or any vertex of `b` lies inside `a`.

    Known limitation: two polygons whose edges cross without either holding a
    vertex of the other (a plus-sign arrangement) are reported as not
    overlapping. The backend overlap check is the authoritative path.
    """
    shape_a = to_shape(a)
    shape_b = to_shape(b)
    if any(shape_b.covers(Point(vertex)) for vertex in a):
        return True
    return any(shape_a.covers(Point(vertex)) for vertex in b)


def compute_bounds(polygon: Sequence[Coordinate]) -> Bounds:
    if not polygon:
        raise InvalidPolygonError("Cannot compute bounds of an empty polygon")
    lngs = [lng for lng, _ in polygon]
    lats = [lat for _, lat in polygon]
    return Bounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


def approximate_area_km2(bounds: Bounds) -> float:
    """Flat-earth bounding-box area; only meaningful for spans of a few tens of km"""
    lat_span = bounds.north - bounds.south
    lng_span = bounds.east - bounds.west
    mean_lat = (bounds.north + bounds.south) / 2
    return lat_span * KM_PER_DEGREE * (lng_span * KM_PER_DEGREE * math.cos(math.radians(mean_lat)))


def bounds_to_ring(bounds: Bounds) -> Ring:
    """Closed rectangle ring: SW, NW, NE, SE, SW"""
    return [
        (bounds.west, bounds.south),
        (bounds.west, bounds.north),
        (bounds.east, bounds.north),
        (bounds.east, bounds.south),
        (bounds.west, bounds.south),
    ]
