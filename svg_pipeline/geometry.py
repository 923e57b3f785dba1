"""
Geometry primitives for the SVG pipeline.

Provides:
- Point2D: mutable 2D point, geographic (lon/lat) before projection and
  pixel space after
- Web Mercator projection to normalized [0, 1] world coordinates
- Feature: typed geometry with properties, id and a cached bounding box
- Ring helpers: signed area, winding normalization, multi-polygon splitting

Winding convention: in pixel space (y pointing down) an outer polygon ring
has a positive signed area and holes a negative one. This is the
convention used by Mapbox Vector Tiles, so decoded tiles need no
re-orientation.

Usage:
    from .geometry import Point2D, project

    pixel = project(8.54, 47.37).scale(512 * 2 ** 14)
"""

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

import numpy as np

FeatureType = Literal["Point", "LineString", "Polygon"]
Bbox = tuple[float, float, float, float]  # x_min, y_min, x_max, y_max
Ring = list["Point2D"]

# Web Mercator latitude limit; the unit square ends here
MAX_LATITUDE = 85.0511287798066


@dataclass
class Point2D:
    """A 2D point. scale() and translate() modify in place for chaining."""

    x: float
    y: float

    def clone(self) -> "Point2D":
        return Point2D(self.x, self.y)

    def scale(self, factor: float) -> "Point2D":
        self.x *= factor
        self.y *= factor
        return self

    def translate(self, offset: "Point2D") -> "Point2D":
        self.x += offset.x
        self.y += offset.y
        return self


def project(lon: float, lat: float) -> Point2D:
    """Project WGS84 degrees to Web Mercator in the unit square.

    x grows eastwards from 0 at -180°, y grows southwards from 0 at the
    northern mercator limit.

    Args:
        lon: Longitude in degrees
        lat: Latitude in degrees

    Returns:
        New Point2D; y is clamped to [0, 1] at the mercator latitude limit
    """
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    s = math.sin(lat * math.pi / 180.0)
    return Point2D(
        lon / 360.0 + 0.5,
        0.5 - 0.25 * math.log((1 + s) / (1 - s)) / math.pi,
    )


def unproject(x: float, y: float) -> tuple[float, float]:
    """Inverse of project(): normalized mercator back to (lon, lat)."""
    lon = (x - 0.5) * 360.0
    lat = math.degrees(math.asin(math.tanh(math.pi * (1 - 2 * y))))
    return (lon, lat)


def signed_area(ring: Ring) -> float:
    """Signed area of a ring using the shoelace formula.

    Positive for rings that appear clockwise on screen (y down).
    """
    if len(ring) < 3:
        return 0.0
    xs = np.fromiter((p.x for p in ring), dtype=np.float64, count=len(ring))
    ys = np.fromiter((p.y for p in ring), dtype=np.float64, count=len(ring))
    return float(np.dot(xs, np.roll(ys, -1)) - np.dot(np.roll(xs, -1), ys)) / 2.0


def normalize_winding(rings: list[Ring]) -> list[Ring]:
    """Orient polygon rings in place: outer ring positive, holes negative.

    Args:
        rings: Rings of a single polygon, outer ring first

    Returns:
        The same list, for chaining
    """
    for index, ring in enumerate(rings):
        area = signed_area(ring)
        wants_positive = index == 0
        if (area > 0) != wants_positive and area != 0:
            ring.reverse()
    return rings


def split_polygon_rings(rings: list[Ring]) -> list[list[Ring]]:
    """Group a flat ring list into polygons (outer ring + holes).

    The sign of the first non-degenerate ring marks outer rings; every
    ring with the same sign starts a new polygon and rings of the opposite
    sign are holes of the polygon before them. Zero-area rings are dropped.
    """
    polygons: list[list[Ring]] = []
    outer_positive: Optional[bool] = None
    for ring in rings:
        area = signed_area(ring)
        if area == 0:
            continue
        if outer_positive is None:
            outer_positive = area > 0
        if (area > 0) == outer_positive or not polygons:
            polygons.append([ring])
        else:
            polygons[-1].append(ring)
    return polygons


@dataclass
class Feature:
    """A map feature in pixel space.

    Points store one single-point ring per point, lines one ring per line
    part and polygons their outer and hole rings.
    """

    type: FeatureType
    geometry: list[Ring]
    properties: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    _bbox: Optional[Bbox] = field(default=None, init=False, repr=False, compare=False)

    def bbox(self) -> Bbox:
        """Get bounding box (x_min, y_min, x_max, y_max), cached."""
        if self._bbox is None:
            points = [p for ring in self.geometry for p in ring]
            if not points:
                self._bbox = (math.inf, math.inf, -math.inf, -math.inf)
            else:
                coords = np.array([(p.x, p.y) for p in points], dtype=np.float64)
                x_min, y_min = coords.min(axis=0)
                x_max, y_max = coords.max(axis=0)
                self._bbox = (float(x_min), float(y_min), float(x_max), float(y_max))
        return self._bbox

    def overlaps(self, bbox: Bbox) -> bool:
        """Check whether the feature's bounding box intersects bbox."""
        x_min, y_min, x_max, y_max = self.bbox()
        if x_min > bbox[2] or y_min > bbox[3]:
            return False
        if x_max < bbox[0] or y_max < bbox[1]:
            return False
        return True


@dataclass
class Features:
    """Features of one source layer, split by geometry kind."""

    points: list[Feature] = field(default_factory=list)
    linestrings: list[Feature] = field(default_factory=list)
    polygons: list[Feature] = field(default_factory=list)

    def add(self, feature: Feature) -> None:
        if feature.type == "Point":
            self.points.append(feature)
        elif feature.type == "LineString":
            self.linestrings.append(feature)
        else:
            self.polygons.append(feature)

    def extend(self, other: "Features") -> None:
        self.points.extend(other.points)
        self.linestrings.extend(other.linestrings)
        self.polygons.extend(other.polygons)

    def __len__(self) -> int:
        return len(self.points) + len(self.linestrings) + len(self.polygons)


# Source-layer name (or GeoJSON source name) -> features
LayerFeatures = dict[str, Features]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity.

    Differs from round() (banker's rounding) on exact halves: 0.5 -> 1,
    2.5 -> 3, -0.5 -> 0.
    """
    return math.floor(value + 0.5)


def to_fixed(value: float, digits: int = 3) -> str:
    """Fixed-point text with halves rounded up: to_fixed(1.0625) -> "1.063"."""
    factor = 10 ** digits
    return f"{round_half_up(value * factor) / factor:.{digits}f}"


def number_to_string(value: float) -> str:
    """Shortest text form of a number: 1.0 -> "1", 0.5 -> "0.5"."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))
