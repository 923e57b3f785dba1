"""
Mapbox Vector Tile decoding.

Tiles are parsed with the protobuf classes shipped by mapbox-vector-tile;
feature geometry command streams are decoded here so that the raw
geometry type and ring structure are kept exactly as encoded.

Geometry encoding (MVT 2.1):
- command integer: id in the low 3 bits, repeat count in the rest
- MoveTo (1) and LineTo (2) take zigzag-encoded (dx, dy) pairs
- ClosePath (7) takes no parameters
"""

import gzip
from typing import Optional, Sequence

from google.protobuf.message import DecodeError as ProtobufDecodeError
from loguru import logger
from mapbox_vector_tile.Mapbox import vector_tile_pb2

from ..errors import DecodeError
from ..geometry import Feature, Features, FeatureType, LayerFeatures, Point2D
from ..tiles import TileInfo, calculate_tile_grid, map_tiles

DEFAULT_EXTENT = 4096

CMD_MOVE_TO = 1
CMD_LINE_TO = 2
CMD_CLOSE_PATH = 7

GEOMETRY_TYPES: dict[int, FeatureType] = {
    1: "Point",
    2: "LineString",
    3: "Polygon",
}

GZIP_MAGIC = b"\x1f\x8b"


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def decode_geometry(commands: Sequence[int]) -> list[list[tuple[int, int]]]:
    """Decode a feature's geometry command stream into rings.

    Every MoveTo starts a new ring. ClosePath appends a copy of the ring's
    first point.

    Args:
        commands: Packed geometry integers

    Returns:
        Rings of (x, y) tile coordinates

    Raises:
        DecodeError: On unknown commands or truncated parameters
    """
    rings: list[list[tuple[int, int]]] = []
    ring: Optional[list[tuple[int, int]]] = None
    x = y = 0
    i = 0
    while i < len(commands):
        command_id = commands[i] & 0x7
        count = commands[i] >> 3
        i += 1

        if command_id in (CMD_MOVE_TO, CMD_LINE_TO):
            if i + 2 * count > len(commands):
                raise DecodeError("Truncated geometry command parameters")
            for _ in range(count):
                x += zigzag_decode(commands[i])
                y += zigzag_decode(commands[i + 1])
                i += 2
                if command_id == CMD_MOVE_TO:
                    ring = []
                    rings.append(ring)
                elif ring is None:
                    raise DecodeError("LineTo before MoveTo")
                ring.append((x, y))
        elif command_id == CMD_CLOSE_PATH:
            if ring:
                ring.append(ring[0])
        else:
            raise DecodeError(f"Unknown geometry command: {command_id}")

    return rings


def _decode_value(value) -> object:
    for field in (
        "string_value",
        "float_value",
        "double_value",
        "int_value",
        "uint_value",
        "sint_value",
        "bool_value",
    ):
        if value.HasField(field):
            return getattr(value, field)
    return None


def parse_tile(data: bytes) -> vector_tile_pb2.tile:
    """Parse raw (optionally gzipped) tile bytes.

    Raises:
        DecodeError: If the bytes are not a valid vector tile
    """
    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except OSError as e:
            raise DecodeError(f"Invalid gzip payload: {e}") from e

    tile = vector_tile_pb2.tile()
    try:
        tile.ParseFromString(data)
    except ProtobufDecodeError as e:
        raise DecodeError(f"Invalid vector tile: {e}") from e
    return tile


def decode_tile(
    data: bytes,
    tile_size: float,
    offset: Point2D,
    bbox: tuple[float, float, float, float],
) -> LayerFeatures:
    """Decode one vector tile into pixel-space features.

    Args:
        data: Tile bytes
        tile_size: Rendered tile size in pixels
        offset: Canvas position of the tile's top-left corner
        bbox: Canvas bounds; features outside are dropped

    Returns:
        Features by source-layer name
    """
    tile = parse_tile(data)
    layer_features: LayerFeatures = {}

    for layer in tile.layers:
        features = layer_features.setdefault(layer.name, Features())
        extent = layer.extent or DEFAULT_EXTENT
        factor = tile_size / extent
        keys = list(layer.keys)
        values = [_decode_value(v) for v in layer.values]

        for source in layer.features:
            feature_type = GEOMETRY_TYPES.get(source.type)
            if feature_type is None:
                raise DecodeError(f"Unknown feature type in vector tile: {source.type}")

            geometry = [
                [Point2D(px, py).scale(factor).translate(offset) for px, py in ring]
                for ring in decode_geometry(source.geometry)
            ]

            properties = {}
            tags = source.tags
            for k in range(0, len(tags) - 1, 2):
                if tags[k] >= len(keys) or tags[k + 1] >= len(values):
                    raise DecodeError(f"Feature tag out of range in layer {layer.name}")
                properties[keys[tags[k]]] = values[tags[k + 1]]

            feature = Feature(
                type=feature_type,
                geometry=geometry,
                properties=properties,
                id=source.id if source.HasField("id") else None,
            )
            if feature.overlaps(bbox):
                features.add(feature)

    return layer_features


def load_vector_source(source: dict, job, layer_features: LayerFeatures) -> None:
    """Fetch and decode all tiles of a vector source covering the view.

    Tiles are fetched and decoded concurrently; each tile produces its own
    feature map and the maps are merged in grid order.

    Args:
        source: Source object from the style
        job: RenderJob
        layer_features: Accumulator, extended in place
    """
    urls = source.get("tiles")
    if not urls:
        return

    width, height = job.width, job.height
    grid = calculate_tile_grid(width, height, job.view.center, job.view.zoom, source.get("maxzoom"))
    bbox = (0.0, 0.0, width, height)

    def load_tile(tile: TileInfo) -> Optional[LayerFeatures]:
        response = job.fetcher.get(urls[0], grid.zoom_level, tile.x, tile.y)
        if response is None:
            return None
        return decode_tile(response.content, grid.tile_size, tile.offset, bbox)

    results = map_tiles(grid, load_tile, job.workers)
    loaded = 0
    for tile_features in results:
        if tile_features is None:
            continue
        loaded += 1
        for name, features in tile_features.items():
            layer_features.setdefault(name, Features()).extend(features)

    logger.debug(f"Vector source {urls[0]}: {loaded}/{len(grid)} tiles at z{grid.zoom_level}")
