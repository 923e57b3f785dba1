"""
Data sources: vector tiles, GeoJSON and raster tiles.

get_layer_features() turns all vector and GeoJSON sources of a style into
one feature map keyed by source-layer name; get_raster_tiles() collects
the images of a raster source.
"""

from .features import get_layer_features
from .geojson import load_geojson_source
from .merge import merge_polygons
from .raster import get_raster_tiles
from .vector import decode_tile, load_vector_source

__all__ = [
    "decode_tile",
    "get_layer_features",
    "get_raster_tiles",
    "load_geojson_source",
    "load_vector_source",
    "merge_polygons",
]
