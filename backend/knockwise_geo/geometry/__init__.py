"""Polygon geometry: containment, overlap, bounds and area"""
from .polygon import (
    SHAPELY_AVAILABLE,
    approximate_area_km2,
    bounds_to_ring,
    close_ring,
    compute_bounds,
    is_closed,
    point_in_polygon,
    polygons_overlap,
    require_geometry,
    to_shape,
    validate_ring,
)
from .spherical import compute_area, compute_distance_between

__all__ = [
    "SHAPELY_AVAILABLE",
    "approximate_area_km2",
    "bounds_to_ring",
    "close_ring",
    "compute_area",
    "compute_bounds",
    "compute_distance_between",
    "is_closed",
    "point_in_polygon",
    "polygons_overlap",
    "require_geometry",
    "to_shape",
    "validate_ring",
]
