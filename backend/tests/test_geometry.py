"""Tests for polygon geometry and spherical measurements"""
import math

import pytest
from pyproj import Geod

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from knockwise_geo.errors import InvalidPolygonError
from knockwise_geo.geometry import (
    approximate_area_km2,
    bounds_to_ring,
    close_ring,
    compute_area,
    compute_bounds,
    compute_distance_between,
    point_in_polygon,
    polygons_overlap,
    validate_ring,
)
from knockwise_geo.models import Bounds

UNIT_SQUARE = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)]


class TestContainment:
    """Tests for point_in_polygon"""

    def test_centroid_inside(self):
        """Test a convex polygon contains its own centroid"""
        assert point_in_polygon((0.5, 0.5), UNIT_SQUARE)

    def test_outside_point(self):
        """Test a far point is outside"""
        assert not point_in_polygon((2.0, 2.0), UNIT_SQUARE)

    def test_concave_notch(self):
        """Test a point in the notch of a concave polygon is outside"""
        u_shape = [(0, 0), (0, 3), (1, 3), (1, 1), (2, 1), (2, 3), (3, 3), (3, 0), (0, 0)]

        assert not point_in_polygon((1.5, 2.0), u_shape)
        assert point_in_polygon((0.5, 2.0), u_shape)


class TestOverlap:
    """Tests for polygons_overlap"""

    def test_overlapping_squares(self):
        """Test squares sharing a corner region overlap in both directions"""
        shifted = [(0.5, 0.5), (0.5, 1.5), (1.5, 1.5), (1.5, 0.5), (0.5, 0.5)]

        assert polygons_overlap(UNIT_SQUARE, shifted)
        assert polygons_overlap(shifted, UNIT_SQUARE)

    def test_disjoint_squares(self):
        """Test separated squares do not overlap"""
        far = [(5, 5), (5, 6), (6, 6), (6, 5), (5, 5)]

        assert not polygons_overlap(UNIT_SQUARE, far)
        assert not polygons_overlap(far, UNIT_SQUARE)

    def test_identical_polygons_overlap(self):
        """Test a polygon overlaps an identical copy (boundary points count as inside)"""
        assert polygons_overlap(UNIT_SQUARE, list(UNIT_SQUARE))

    def test_contained_polygon(self):
        """Test a polygon fully inside another overlaps it"""
        inner = [(0.2, 0.2), (0.2, 0.8), (0.8, 0.8), (0.8, 0.2), (0.2, 0.2)]

        assert polygons_overlap(UNIT_SQUARE, inner)
        assert polygons_overlap(inner, UNIT_SQUARE)

    def test_crossing_without_vertex_containment_is_missed(self):
        """Test the known limitation: a plus-sign crossing is not reported"""
        horizontal = [(-2, -0.5), (-2, 0.5), (2, 0.5), (2, -0.5), (-2, -0.5)]
        vertical = [(-0.5, -2), (-0.5, 2), (0.5, 2), (0.5, -2), (-0.5, -2)]

        assert not polygons_overlap(horizontal, vertical)
        assert not polygons_overlap(vertical, horizontal)


class TestBoundsAndArea:
    """Tests for compute_bounds and approximate_area_km2"""

    def test_bounds_contain_every_vertex(self):
        """Test bounds are ordered and include all vertices"""
        ring = [(-79.4, 43.64), (-79.36, 43.66), (-79.38, 43.7), (-79.45, 43.61), (-79.4, 43.64)]
        bounds = compute_bounds(ring)

        assert bounds.north >= bounds.south
        assert bounds.east >= bounds.west
        for lng, lat in ring:
            assert bounds.contains(lng, lat)

    def test_bounds_values(self):
        """Test min/max reduction"""
        bounds = compute_bounds(UNIT_SQUARE)

        assert bounds == Bounds(north=1.0, south=0.0, east=1.0, west=0.0)

    def test_empty_polygon_rejected(self):
        """Test bounds of an empty ring raise"""
        with pytest.raises(InvalidPolygonError):
            compute_bounds([])

    def test_flat_area_formula(self):
        """Test the flat-earth bounding-box area"""
        bounds = Bounds(north=43.66, south=43.64, east=-79.36, west=-79.40)
        expected = 0.02 * 111 * (0.04 * 111 * math.cos(math.radians(43.65)))

        assert approximate_area_km2(bounds) == pytest.approx(expected)

    def test_bounds_to_ring_round_trip(self):
        """Test a rectangle ring recomputes to the same bounds"""
        bounds = Bounds(north=43.66, south=43.64, east=-79.36, west=-79.40)
        ring = bounds_to_ring(bounds)

        assert len(ring) == 5
        assert ring[0] == ring[-1]
        assert compute_bounds(ring) == bounds


class TestRings:
    """Tests for ring closing and validation"""

    def test_close_ring_appends_first_point(self):
        """Test an open ring gets closed"""
        ring = close_ring([(0, 0), (0, 1), (1, 1)])

        assert ring[-1] == ring[0]
        assert len(ring) == 4

    def test_close_ring_leaves_closed_ring(self):
        """Test a closed ring is unchanged"""
        assert close_ring(UNIT_SQUARE) == UNIT_SQUARE

    def test_too_few_points(self):
        """Test a ring with fewer than 4 points is rejected"""
        with pytest.raises(InvalidPolygonError):
            validate_ring([(0, 0), (0, 1), (0, 0)])

    def test_unclosed_ring(self):
        """Test an unclosed ring is rejected"""
        with pytest.raises(InvalidPolygonError):
            validate_ring([(0, 0), (0, 1), (1, 1), (1, 0)])

    def test_degenerate_ring(self):
        """Test a ring without 3 distinct vertices is rejected"""
        with pytest.raises(InvalidPolygonError):
            validate_ring([(0, 0), (0, 1), (0, 1), (0, 0)])


class TestSpherical:
    """Tests for spherical area and distance"""

    def test_one_degree_of_latitude(self):
        """Test distance along a meridian"""
        distance = compute_distance_between((0.0, 0.0), (0.0, 1.0))

        assert distance == pytest.approx(6378137 * math.pi / 180)

    def test_small_square_area(self):
        """Test area of a small equatorial square"""
        side = 0.001
        ring = [(0, 0), (0, side), (side, side), (side, 0), (0, 0)]
        expected = (math.radians(side) * 6378137) ** 2

        assert compute_area(ring) == pytest.approx(expected, rel=1e-3)

    def test_orientation_does_not_matter(self):
        """Test area is unsigned"""
        assert compute_area(UNIT_SQUARE) == pytest.approx(compute_area(list(reversed(UNIT_SQUARE))))

    def test_degenerate_path(self):
        """Test fewer than 3 points have no area"""
        assert compute_area([(0, 0), (1, 1)]) == 0.0
        assert compute_area([(0, 0), (1, 1), (0, 0)]) == 0.0

    def test_open_and_closed_rings_agree(self):
        """Test the closing vertex does not change the area"""
        assert compute_area(UNIT_SQUARE[:-1]) == pytest.approx(compute_area(UNIT_SQUARE))

    def test_ellipsoid_can_be_swapped(self):
        """Test a WGS84 geodesic area stays within 1% of the sphere"""
        wgs84 = compute_area(UNIT_SQUARE, geod=Geod(ellps="WGS84"))

        assert wgs84 != compute_area(UNIT_SQUARE)
        assert wgs84 == pytest.approx(compute_area(UNIT_SQUARE), rel=1e-2)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
