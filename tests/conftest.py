#!/usr/bin/env python3
"""Pytest configuration and shared fixtures."""
import tempfile
from pathlib import Path

import pytest
from mapbox_vector_tile.Mapbox import vector_tile_pb2

from svg_pipeline.geometry import Feature, Point2D
from svg_pipeline.tiles import TileResponse, tile_url

CMD_MOVE_TO = 1
CMD_LINE_TO = 2
CMD_CLOSE_PATH = 7

GEOM_TYPES = {"Point": 1, "LineString": 2, "Polygon": 3, "Unknown": 0}


def zigzag(n: int) -> int:
    return (n << 1) ^ (n >> 31)


def command(cmd: int, count: int) -> int:
    return (cmd & 0x7) | (count << 3)


def encode_geometry(kind: str, rings: list) -> list[int]:
    """Encode rings of absolute tile coordinates as an MVT command stream."""
    out = []
    x = y = 0
    if kind == "Point":
        out.append(command(CMD_MOVE_TO, len(rings)))
        for ring in rings:
            px, py = ring[0]
            out += [zigzag(px - x), zigzag(py - y)]
            x, y = px, py
        return out

    for ring in rings:
        points = ring[:-1] if kind == "Polygon" else ring
        px, py = points[0]
        out += [command(CMD_MOVE_TO, 1), zigzag(px - x), zigzag(py - y)]
        x, y = px, py
        out.append(command(CMD_LINE_TO, len(points) - 1))
        for px, py in points[1:]:
            out += [zigzag(px - x), zigzag(py - y)]
            x, y = px, py
        if kind == "Polygon":
            out.append(command(CMD_CLOSE_PATH, 1))
    return out


def build_tile(layers: dict, extent: int = 4096) -> bytes:
    """Build MVT bytes.

    layers maps a layer name to a list of feature dicts with "type"
    ("Point", "LineString", "Polygon"), "rings" (absolute tile coordinates,
    polygon rings closed), optional "properties" and "id".
    """
    tile = vector_tile_pb2.tile()
    for name, features in layers.items():
        layer = tile.layers.add()
        layer.name = name
        layer.version = 2
        layer.extent = extent
        keys: list[str] = []
        values: list = []

        for spec in features:
            feature = layer.features.add()
            if spec.get("id") is not None:
                feature.id = spec["id"]
            feature.type = GEOM_TYPES[spec["type"]]
            if "commands" in spec:
                feature.geometry.extend(spec["commands"])
            else:
                feature.geometry.extend(encode_geometry(spec["type"], spec["rings"]))

            for key, value in spec.get("properties", {}).items():
                if key not in keys:
                    keys.append(key)
                if value not in values:
                    values.append(value)
                feature.tags.extend([keys.index(key), values.index(value)])

        layer.keys.extend(keys)
        for value in values:
            entry = layer.values.add()
            if isinstance(value, bool):
                entry.bool_value = value
            elif isinstance(value, int):
                entry.sint_value = value
            elif isinstance(value, float):
                entry.double_value = value
            else:
                entry.string_value = value

    return tile.SerializeToString()


class FakeFetcher:
    """In-memory byte source. Records every requested URL."""

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default
        self.requested: list[str] = []

    def get_url(self, url):
        self.requested.append(url)
        response = self.responses.get(url, self.default)
        if response is None:
            return None
        if isinstance(response, bytes):
            return TileResponse(content=response)
        return response

    def get(self, url_template, z, x, y):
        return self.get_url(tile_url(url_template, z, x, y))


def make_feature(kind: str, rings: list, properties=None, id=None) -> Feature:
    """Feature from rings of (x, y) tuples."""
    return Feature(
        type=kind,
        geometry=[[Point2D(x, y) for x, y in ring] for ring in rings],
        properties=properties or {},
        id=id,
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_fetcher():
    """Byte source that knows no URLs."""
    return FakeFetcher()


@pytest.fixture
def point_geojson():
    """One point at null island."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "origin"},
                "geometry": {"type": "Point", "coordinates": [0, 0]},
            }
        ],
    }


@pytest.fixture
def landuse_geojson():
    """Two squares around null island, one residential and one industrial."""

    def square(lon, lat, size=5):
        return [[
            [lon, lat],
            [lon + size, lat],
            [lon + size, lat + size],
            [lon, lat + size],
            [lon, lat],
        ]]

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"class": "residential"},
                "geometry": {"type": "Polygon", "coordinates": square(-10, -10)},
            },
            {
                "type": "Feature",
                "properties": {"class": "industrial"},
                "geometry": {"type": "Polygon", "coordinates": square(5, 5)},
            },
        ],
    }
