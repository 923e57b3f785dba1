#!/usr/bin/env python3
"""Tests for polygon fragment merging."""
import pytest

from svg_pipeline.geometry import signed_area
from svg_pipeline.sources.merge import merge_polygons

from conftest import make_feature


def square(x, y, size=10):
    """Closed square ring, positive winding."""
    return [(x, y), (x + size, y), (x + size, y + size), (x, y + size), (x, y)]


def hole(x, y, size=2):
    """Closed square ring, negative winding."""
    return list(reversed(square(x, y, size)))


class TestMergePolygons:
    """Tests for merge_polygons()."""

    def test_adjacent_fragments_become_one(self):
        """Test two halves of a polygon split at a tile edge are rejoined."""
        left = make_feature("Polygon", [square(0, 0)], {"class": "park"}, id=1)
        right = make_feature("Polygon", [square(10, 0)], {"class": "park"}, id=1)

        merged = merge_polygons([left, right])

        assert len(merged) == 1
        assert merged[0].id == 1
        assert merged[0].bbox() == (0, 0, 20, 10)
        assert signed_area(merged[0].geometry[0]) == pytest.approx(200)

    def test_overlapping_fragments(self):
        """Test overlapping fragments with buffered tile edges."""
        a = make_feature("Polygon", [square(0, 0)], id=3)
        b = make_feature("Polygon", [square(5, 0)], id=3)
        merged = merge_polygons([a, b])
        assert len(merged) == 1
        assert signed_area(merged[0].geometry[0]) == pytest.approx(150)

    def test_disjoint_parts_keep_id(self):
        """Test a union with several parts yields one feature per part."""
        a = make_feature("Polygon", [square(0, 0)], {"name": "first"}, id=7)
        b = make_feature("Polygon", [square(50, 50)], {"name": "second"}, id=7)

        merged = merge_polygons([a, b])

        assert len(merged) == 2
        assert [f.id for f in merged] == [7, 7]
        assert all(f.properties == {"name": "first"} for f in merged)

    def test_holes_survive(self):
        """Test holes are kept with negative winding."""
        left = make_feature("Polygon", [square(0, 0), hole(2, 2)], id=1)
        right = make_feature("Polygon", [square(10, 0)], id=1)

        merged = merge_polygons([left, right])

        assert len(merged) == 1
        rings = merged[0].geometry
        assert len(rings) == 2
        assert signed_area(rings[0]) > 0
        assert signed_area(rings[1]) < 0

    def test_anonymous_features_pass_through_in_place(self):
        """Test features without an id are not merged and keep their position."""
        first = make_feature("Polygon", [square(0, 0)])
        a = make_feature("Polygon", [square(20, 0)], id=2)
        middle = make_feature("Polygon", [square(10, 0)])
        b = make_feature("Polygon", [square(30, 0)], id=2)

        merged = merge_polygons([first, a, middle, b])

        assert len(merged) == 3
        assert merged[0] is first
        assert merged[1].id == 2
        assert merged[1].bbox() == (20, 0, 40, 10)
        assert merged[2] is middle

    def test_order_of_first_appearance(self):
        """Test groups are emitted in the order their id first appears."""
        features = [
            make_feature("Polygon", [square(0, 0)], id=9),
            make_feature("Polygon", [square(20, 0)], id=4),
            make_feature("Polygon", [square(10, 0)], id=9),
        ]
        assert [f.id for f in merge_polygons(features)] == [9, 4]

    def test_single_fragment_unchanged(self):
        """Test a lone feature is returned as is."""
        feature = make_feature("Polygon", [square(0, 0)], id=5)
        assert merge_polygons([feature])[0] is feature

    def test_boolean_ids_are_not_merged(self):
        """Test boolean ids do not count as integer ids."""
        a = make_feature("Polygon", [square(0, 0)], id=True)
        b = make_feature("Polygon", [square(10, 0)], id=True)
        assert merge_polygons([a, b]) == [a, b]

    def test_empty(self):
        """Test an empty layer."""
        assert merge_polygons([]) == []
