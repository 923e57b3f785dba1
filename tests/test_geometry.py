#!/usr/bin/env python3
"""Tests for geometry primitives and projection."""
import math

import pytest

from svg_pipeline.geometry import (
    Feature,
    Features,
    Point2D,
    normalize_winding,
    number_to_string,
    project,
    round_half_up,
    signed_area,
    split_polygon_rings,
    to_fixed,
    unproject,
)

from conftest import make_feature


def ring(*coords):
    return [Point2D(x, y) for x, y in coords]


class TestPoint2D:
    """Tests for the mutable point type."""

    def test_scale_and_translate_chain(self):
        """Test scale() and translate() modify in place and return self."""
        p = Point2D(1, 2)
        result = p.scale(3).translate(Point2D(10, 20))
        assert result is p
        assert (p.x, p.y) == (13, 26)

    def test_clone_is_independent(self):
        """Test clone() returns a new point."""
        p = Point2D(1, 2)
        q = p.clone()
        q.scale(2)
        assert (p.x, p.y) == (1, 2)


class TestProjection:
    """Tests for Web Mercator projection."""

    def test_origin_projects_to_center(self):
        """Test null island maps to the middle of the unit square."""
        p = project(0, 0)
        assert p.x == pytest.approx(0.5)
        assert p.y == pytest.approx(0.5)

    def test_longitude_extremes(self):
        """Test the antimeridian maps to the square's edges."""
        assert project(-180, 0).x == pytest.approx(0.0)
        assert project(180, 0).x == pytest.approx(1.0)

    def test_north_is_up(self):
        """Test y decreases towards the north."""
        assert project(0, 45).y < 0.5 < project(0, -45).y

    def test_mercator_limit(self):
        """Test the mercator latitude limit maps to y = 0."""
        assert project(0, 85.0511287798).y == pytest.approx(0.0, abs=1e-9)

    @pytest.mark.parametrize("lon,lat", [(0, 0), (8.54, 47.37), (-122.4, 37.8), (179.9, -84.9)])
    def test_round_trip(self, lon, lat):
        """Test unproject(project(p)) returns p."""
        p = project(lon, lat)
        back_lon, back_lat = unproject(p.x, p.y)
        assert back_lon == pytest.approx(lon, abs=1e-9)
        assert back_lat == pytest.approx(lat, abs=1e-9)

    @pytest.mark.parametrize("lat,expected_y", [(90, 0.0), (-90, 1.0), (89.99, 0.0), (-1000, 1.0)])
    def test_poles_clamped_to_mercator_limit(self, lat, expected_y):
        """Test latitudes beyond the mercator limit stay finite and on the square's edge."""
        p = project(12, lat)
        assert math.isfinite(p.y)
        assert p.y == pytest.approx(expected_y, abs=1e-9)


class TestWinding:
    """Tests for ring area and orientation."""

    def test_signed_area_sign(self):
        """Test clockwise-on-screen rings are positive."""
        square = ring((0, 0), (10, 0), (10, 10), (0, 10), (0, 0))
        assert signed_area(square) == pytest.approx(100)
        assert signed_area(list(reversed(square))) == pytest.approx(-100)

    def test_degenerate_ring_has_zero_area(self):
        """Test rings with fewer than three points."""
        assert signed_area(ring((0, 0), (1, 1))) == 0

    def test_normalize_outer_and_hole(self):
        """Test outer ring becomes positive and holes negative."""
        outer = ring((0, 0), (0, 10), (10, 10), (10, 0), (0, 0))
        hole = ring((2, 2), (4, 2), (4, 4), (2, 4), (2, 2))
        rings = normalize_winding([outer, hole])
        assert signed_area(rings[0]) > 0
        assert signed_area(rings[1]) < 0

    def test_split_polygon_rings(self):
        """Test a flat ring list is grouped into polygons with holes."""
        a = ring((0, 0), (10, 0), (10, 10), (0, 10), (0, 0))
        a_hole = ring((2, 2), (2, 4), (4, 4), (4, 2), (2, 2))
        b = ring((20, 0), (30, 0), (30, 10), (20, 10), (20, 0))
        polygons = split_polygon_rings([a, a_hole, b])
        assert len(polygons) == 2
        assert polygons[0] == [a, a_hole]
        assert polygons[1] == [b]

    def test_split_drops_zero_area_rings(self):
        """Test degenerate rings are ignored."""
        line = ring((0, 0), (5, 5), (0, 0))
        square = ring((0, 0), (10, 0), (10, 10), (0, 10), (0, 0))
        assert split_polygon_rings([line, square]) == [[square]]


class TestFeature:
    """Tests for feature bounds and culling."""

    def test_bbox(self):
        """Test bbox covers every ring point."""
        feature = make_feature("LineString", [[(1, 5), (3, -2)], [(-4, 0), (0, 9)]])
        assert feature.bbox() == (-4, -2, 3, 9)

    def test_bbox_is_cached(self):
        """Test bbox is computed once."""
        feature = make_feature("Point", [[(1, 1)]])
        first = feature.bbox()
        feature.geometry[0][0].x = 100
        assert feature.bbox() == first

    def test_overlaps(self):
        """Test four-way bbox rejection."""
        feature = make_feature("Polygon", [[(10, 10), (20, 10), (20, 20), (10, 10)]])
        assert feature.overlaps((0, 0, 100, 100))
        assert feature.overlaps((15, 15, 16, 16))
        assert not feature.overlaps((21, 0, 100, 100))
        assert not feature.overlaps((0, 0, 9, 100))
        assert not feature.overlaps((0, 21, 100, 100))
        assert not feature.overlaps((0, 0, 100, 9))

    def test_empty_feature_never_overlaps(self):
        """Test features without points are culled."""
        feature = Feature(type="Point", geometry=[])
        assert not feature.overlaps((0, 0, 100, 100))

    def test_features_add_sorts_by_kind(self):
        """Test Features.add() files features by type."""
        features = Features()
        features.add(make_feature("Point", [[(0, 0)]]))
        features.add(make_feature("LineString", [[(0, 0), (1, 1)]]))
        features.add(make_feature("Polygon", [[(0, 0), (1, 0), (1, 1), (0, 0)]]))
        assert len(features.points) == 1
        assert len(features.linestrings) == 1
        assert len(features.polygons) == 1
        assert len(features) == 3


class TestNumberHelpers:
    """Tests for rounding and number formatting."""

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (-0.5, 0), (-1.5, -1), (1.4, 1)])
    def test_round_half_up(self, value, expected):
        """Test halves round towards positive infinity."""
        assert round_half_up(value) == expected

    @pytest.mark.parametrize(
        "value,expected", [(1, "1"), (1.0, "1"), (0.5, "0.5"), (-2.0, "-2"), (0.25, "0.25")]
    )
    def test_number_to_string(self, value, expected):
        """Test integral floats drop the fraction."""
        assert number_to_string(value) == expected

    @pytest.mark.parametrize(
        "value,expected", [(1.0625, "1.063"), (2, "2.000"), (0.0625, "0.063"), (-0.0256, "-0.026"), (0, "0.000")]
    )
    def test_to_fixed(self, value, expected):
        """Test three-decimal formatting rounds halves up."""
        assert to_fixed(value) == expected

    def test_number_to_string_infinity(self):
        """Test non-finite values do not crash."""
        assert number_to_string(math.inf) == "inf"
