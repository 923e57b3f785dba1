"""
Feature loading for all vector and GeoJSON sources of a style.
"""

import json

from loguru import logger

from ..geometry import Features, LayerFeatures
from .geojson import load_geojson_source
from .merge import merge_polygons
from .vector import load_vector_source


def _load_geojson_data(job, source_name: str, data):
    """Resolve a GeoJSON source's data, fetching it when given as a URL."""
    if not isinstance(data, str):
        return data

    response = job.fetcher.get_url(data)
    if response is None:
        logger.warning(f"GeoJSON source {source_name}: could not load {data}")
        return None
    try:
        return json.loads(response.content)
    except ValueError as e:
        logger.warning(f"GeoJSON source {source_name}: invalid JSON at {data} ({e})")
        return None


def get_layer_features(job) -> LayerFeatures:
    """Load the features of every vector and GeoJSON source in the style.

    Sources are loaded in declaration order. Afterwards polygon fragments
    are merged per source layer.

    Args:
        job: RenderJob

    Returns:
        Features by source-layer name (GeoJSON: by source name)
    """
    layer_features: LayerFeatures = {}

    for source_name, source in job.style.get("sources", {}).items():
        kind = source.get("type")
        if kind == "vector":
            load_vector_source(source, job, layer_features)
        elif kind == "geojson":
            data = _load_geojson_data(job, source_name, source.get("data"))
            if data:
                load_geojson_source(
                    source_name,
                    data,
                    job.width,
                    job.height,
                    job.view.zoom,
                    job.view.center,
                    layer_features,
                )

    for name, features in layer_features.items():
        layer_features[name] = Features(
            points=features.points,
            linestrings=features.linestrings,
            polygons=merge_polygons(features.polygons),
        )

    return layer_features
