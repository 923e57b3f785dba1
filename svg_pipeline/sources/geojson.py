"""
GeoJSON ingestion.

Projects GeoJSON coordinates into canvas pixels for the current view and
sorts them into points, lines and polygons. Like MapLibre, a line also
contributes its vertices as points, and a polygon contributes its rings
as lines and its vertices as points, so circle and line layers can be
drawn from any GeoJSON source.
"""

from typing import Any, Optional

from ..geometry import (
    Feature,
    Features,
    FeatureType,
    LayerFeatures,
    Point2D,
    Ring,
    normalize_winding,
    project,
)

# World size in pixels at zoom 0
WORLD_SIZE = 512


def _feature_id(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


class GeoJSONLoader:
    """Converts GeoJSON objects into features for one source."""

    def __init__(
        self,
        features: Features,
        width: float,
        height: float,
        zoom: float,
        center: tuple[float, float],
    ):
        self.features = features
        self.width = width
        self.height = height
        self.world_size = WORLD_SIZE * 2**zoom
        self.center = project(center[0], center[1])
        self.bbox = (0.0, 0.0, width, height)

    def project(self, coord: list[float]) -> Point2D:
        mercator = project(coord[0], coord[1])
        return Point2D(
            (mercator.x - self.center.x) * self.world_size + self.width / 2,
            (mercator.y - self.center.y) * self.world_size + self.height / 2,
        )

    def _ring(self, coords: list) -> Ring:
        return [self.project(c) for c in coords]

    def load(self, data: dict) -> None:
        """Add a FeatureCollection, Feature or bare geometry."""
        kind = data.get("type")
        if kind == "FeatureCollection":
            for feature in data.get("features", []):
                self._add_geometry(
                    feature.get("geometry"),
                    _feature_id(feature.get("id")),
                    feature.get("properties") or {},
                )
        elif kind == "Feature":
            self._add_geometry(
                data.get("geometry"), _feature_id(data.get("id")), data.get("properties") or {}
            )
        else:
            self._add_geometry(data, None, {})

    def _add_geometry(self, geometry: Optional[dict], id: Optional[int], properties: dict) -> None:
        if not geometry:
            return
        kind = geometry.get("type")
        coords = geometry.get("coordinates")

        if kind == "Point":
            self._add("Point", [[self.project(coords)]], id, properties)
        elif kind == "MultiPoint":
            self._add("Point", [[self.project(c)] for c in coords], id, properties)
        elif kind == "LineString":
            self._add("LineString", [self._ring(coords)], id, properties)
        elif kind == "MultiLineString":
            self._add("LineString", [self._ring(line) for line in coords], id, properties)
        elif kind == "Polygon":
            rings = normalize_winding([self._ring(ring) for ring in coords])
            self._add("Polygon", rings, id, properties)
        elif kind == "MultiPolygon":
            rings = []
            for polygon in coords:
                rings.extend(normalize_winding([self._ring(ring) for ring in polygon]))
            self._add("Polygon", rings, id, properties)
        elif kind == "GeometryCollection":
            for child in geometry.get("geometries", []):
                self._add_geometry(child, id, properties)

    def _add(self, kind: FeatureType, geometry: list[Ring], id: Optional[int], properties: dict) -> None:
        feature = Feature(type=kind, geometry=geometry, properties=properties, id=id)
        if not feature.overlaps(self.bbox):
            return

        self.features.add(feature)
        if kind == "Polygon":
            self.features.add(
                Feature(type="LineString", geometry=geometry, properties=properties, id=id)
            )
        if kind in ("LineString", "Polygon"):
            vertices = [[p] for ring in geometry for p in ring]
            self.features.add(Feature(type="Point", geometry=vertices, properties=properties, id=id))


def load_geojson_source(
    source_name: str,
    data: dict,
    width: float,
    height: float,
    zoom: float,
    center: tuple[float, float],
    layer_features: LayerFeatures,
) -> None:
    """Project GeoJSON data into the feature map under the source's name.

    Args:
        source_name: Style source id, used as the feature map key
        data: GeoJSON object
        width: Canvas width in pixels
        height: Canvas height in pixels
        zoom: Map zoom
        center: (lon, lat) of the canvas center
        layer_features: Accumulator, extended in place
    """
    features = layer_features.setdefault(source_name, Features())
    GeoJSONLoader(features, width, height, zoom, center).load(data)
