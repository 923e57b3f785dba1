"""
Cross-tile polygon reassembly.

Vector tiles clip polygons at tile boundaries, so a large area spanning
several tiles arrives as several fragments sharing one feature id. The
fragments are unioned back into whole polygons so that seams do not show
up as hairlines in the SVG.
"""

from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from ..geometry import Feature, Point2D, split_polygon_rings


def _to_shapely(feature: Feature) -> list[Polygon]:
    """Convert a polygon feature's rings to valid shapely polygons."""
    polygons = []
    for rings in split_polygon_rings(feature.geometry):
        shell = [(p.x, p.y) for p in rings[0]]
        holes = [[(p.x, p.y) for p in ring] for ring in rings[1:]]
        polygon = Polygon(shell, holes)
        if not polygon.is_valid:
            polygon = polygon.buffer(0)
        if polygon.is_empty:
            continue
        if isinstance(polygon, MultiPolygon):
            polygons.extend(polygon.geoms)
        else:
            polygons.append(polygon)
    return polygons


def _from_shapely(polygon: Polygon, id: int, properties: dict) -> Feature:
    polygon = orient(polygon, sign=1.0)
    rings = [polygon.exterior] + list(polygon.interiors)
    geometry = [[Point2D(x, y) for x, y in ring.coords] for ring in rings]
    return Feature(type="Polygon", geometry=geometry, properties=properties, id=id)


def _polygon_parts(geometry: BaseGeometry) -> list[Polygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    # GeometryCollection from degenerate input: keep the polygonal parts
    parts = []
    for part in getattr(geometry, "geoms", []):
        parts.extend(_polygon_parts(part))
    return parts


def merge_polygons(features: list[Feature]) -> list[Feature]:
    """Union polygon fragments that share an integer feature id.

    Features appear in the output in the order their id first appears.
    Features without an integer id are never merged and keep their place.
    A union that yields several disjoint parts produces one feature per
    part, all with the same id and the first fragment's properties.

    Args:
        features: Polygon features of one source layer

    Returns:
        New list of polygon features
    """
    # Key -> fragments; anonymous features get a key of their own
    groups: dict[object, list[Feature]] = {}
    for index, feature in enumerate(features):
        id = feature.id
        if isinstance(id, int) and not isinstance(id, bool):
            groups.setdefault(("id", id), []).append(feature)
        else:
            groups[("anonymous", index)] = [feature]

    merged: list[Feature] = []
    for group in groups.values():
        if len(group) == 1:
            merged.append(group[0])
            continue

        first = group[0]
        polygons = [polygon for feature in group for polygon in _to_shapely(feature)]
        if not polygons:
            continue
        union = unary_union(polygons)
        for part in _polygon_parts(union):
            merged.append(_from_shapely(part, first.id, first.properties))

    return merged
