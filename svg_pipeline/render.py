"""
Render orchestration.

Ties the pipeline together: loads all sources of a style into one feature
map, then walks the style layers in order, resolves their properties for
the view's zoom and hands filtered, styled features to the SVG renderer.

Usage:
    from svg_pipeline import render_to_svg

    svg = render_to_svg("style.json", width=800, height=600,
                        lon=8.54, lat=47.37, zoom=13)
"""

import json
import time
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .config import RenderConfig
from .errors import UnsupportedLayerError, ValidationError
from .geometry import Feature, Features, LayerFeatures
from .job import RenderJob, View
from .sources import get_layer_features, get_raster_tiles
from .style_layer import StyleLayer, get_layer_styles
from .svg_renderer import (
    BackgroundStyle,
    CircleStyle,
    FillStyle,
    LineStyle,
    RasterStyle,
    SVGRenderer,
)
from .tiles import ByteSource, TileFetcher

# Known layer types without a native renderer
SKIPPED_LAYER_TYPES = ("symbol", "heatmap", "hillshade", "fill-extrusion", "color-relief")
DRAWN_LAYER_TYPES = ("background", "fill", "line", "circle", "raster")

StyleInput = Union[dict, str, Path]


def _get_features(layer_features: LayerFeatures, layer: StyleLayer) -> Optional[Features]:
    features = layer_features.get(layer.source_layer)
    if features is None:
        features = layer_features.get(layer.source)
    return features


def _filter_features(layer: StyleLayer, candidates: list[Feature], zoom: float) -> list[Feature]:
    globals = {"zoom": zoom}
    if not layer.filter.needs_feature:
        # zoom-only or absent filter: same answer for every feature
        if not candidates or layer.filter.filter(globals, candidates[0]):
            return list(candidates)
        return []
    return [f for f in candidates if layer.filter.filter(globals, f)]


def _translate(value) -> tuple[float, float]:
    return (value[0], value[1]) if value else (0, 0)


def _draw_fill(renderer: SVGRenderer, layer: StyleLayer, features: list[Feature]) -> None:
    renderer.draw_polygons(
        [
            (
                f,
                FillStyle(
                    color=layer.get_paint("fill-color", f),
                    translate=_translate(layer.get_paint("fill-translate", f)),
                ),
            )
            for f in features
        ],
        layer.get_paint("fill-opacity", features[0]),
    )


def _draw_line(renderer: SVGRenderer, layer: StyleLayer, features: list[Feature]) -> None:
    renderer.draw_line_strings(
        [
            (
                f,
                LineStyle(
                    color=layer.get_paint("line-color", f),
                    width=layer.get_paint("line-width", f),
                    cap=layer.get_layout("line-cap", f),
                    join=layer.get_layout("line-join", f),
                    miter_limit=layer.get_layout("line-miter-limit", f),
                    dasharray=layer.get_paint("line-dasharray", f),
                    translate=_translate(layer.get_paint("line-translate", f)),
                ),
            )
            for f in features
        ],
        layer.get_paint("line-opacity", features[0]),
    )


def _draw_circle(renderer: SVGRenderer, layer: StyleLayer, features: list[Feature]) -> None:
    styled = []
    for f in features:
        stroke_color = layer.get_paint("circle-stroke-color", f)
        stroke_color.alpha *= layer.get_paint("circle-stroke-opacity", f)
        styled.append(
            (
                f,
                CircleStyle(
                    color=layer.get_paint("circle-color", f),
                    radius=layer.get_paint("circle-radius", f),
                    stroke_width=layer.get_paint("circle-stroke-width", f),
                    stroke_color=stroke_color,
                    translate=_translate(layer.get_paint("circle-translate", f)),
                ),
            )
        )
    renderer.draw_circles(styled, layer.get_paint("circle-opacity", features[0]))


def _draw_raster(job: RenderJob, layer: StyleLayer) -> None:
    tiles = get_raster_tiles(job, layer.source)
    job.renderer.draw_raster_tiles(
        tiles,
        RasterStyle(
            opacity=layer.get_paint("raster-opacity"),
            hue_rotate=layer.get_paint("raster-hue-rotate"),
            brightness_min=layer.get_paint("raster-brightness-min"),
            brightness_max=layer.get_paint("raster-brightness-max"),
            saturation=layer.get_paint("raster-saturation"),
            contrast=layer.get_paint("raster-contrast"),
            resampling=layer.get_paint("raster-resampling"),
        ),
    )


# Layer type -> (feature kind, draw function)
VECTOR_LAYERS = {
    "fill": ("polygons", _draw_fill),
    "line": ("linestrings", _draw_line),
    "circle": ("points", _draw_circle),
}


def render_map(job: RenderJob) -> str:
    """Render a job to an SVG document.

    Args:
        job: RenderJob; used once

    Returns:
        SVG text

    Raises:
        RenderError: On invalid expressions, undecodable tiles or
            unsupported layer types. Nothing partial is returned.
    """
    start = time.perf_counter()
    renderer = job.renderer
    zoom = job.view.zoom
    available_images: list[str] = []

    layer_specs = job.style.get("layers", [])
    for spec in layer_specs:
        if spec.get("type") not in DRAWN_LAYER_TYPES + SKIPPED_LAYER_TYPES:
            raise UnsupportedLayerError(spec.get("type"))
    layers = get_layer_styles(
        {"layers": [spec for spec in layer_specs if spec.get("type") in DRAWN_LAYER_TYPES]}
    )

    layer_features = get_layer_features(job)

    drawn = 0
    for layer in layers:
        if layer.is_hidden(zoom):
            logger.debug(f"Layer {layer.id}: hidden at zoom {zoom}")
            continue

        layer.recalculate(zoom, available_images)

        if layer.type == "background":
            renderer.draw_background_fill(
                BackgroundStyle(
                    color=layer.get_paint("background-color"),
                    opacity=layer.get_paint("background-opacity"),
                )
            )
            drawn += 1
        elif layer.type in VECTOR_LAYERS:
            kind, draw = VECTOR_LAYERS[layer.type]
            features = _get_features(layer_features, layer)
            candidates = getattr(features, kind) if features is not None else []
            selected = _filter_features(layer, candidates, zoom)
            if not selected:
                logger.debug(f"Layer {layer.id}: no features")
                continue
            draw(renderer, layer, selected)
            drawn += 1
        elif layer.type == "raster":
            _draw_raster(job, layer)
            drawn += 1

    elapsed = time.perf_counter() - start
    logger.info(f"Rendered {drawn}/{len(layer_specs)} layers in {elapsed:.2f}s")
    return renderer.get_string()


def load_style(style: StyleInput) -> dict:
    """Load a style from a dict, a JSON string or a file path.

    Raises:
        ValidationError: If the style cannot be read or parsed
    """
    if isinstance(style, dict):
        return style

    text = style
    if isinstance(style, Path) or not style.lstrip().startswith("{"):
        path = Path(style)
        if not path.exists():
            raise ValidationError(f"Style file not found: {path}")
        text = path.read_text(encoding="utf-8")

    try:
        loaded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid style JSON: {e}") from e
    if not isinstance(loaded, dict):
        raise ValidationError("Style must be a JSON object")
    return loaded


def validate_style(style: dict) -> None:
    """Check that vector sources and the sources of raster layers have tile URLs.

    Raises:
        ValidationError: On a malformed style or a source without tiles
    """
    sources = style.get("sources", {})
    layers = style.get("layers")
    if not isinstance(sources, dict):
        raise ValidationError("Style sources must be an object")
    if not isinstance(layers, list):
        raise ValidationError("Style must have a layers array")

    for name, source in sources.items():
        if source.get("type") == "vector" and not source.get("tiles"):
            raise ValidationError(f"Vector source {name} has no tiles")

    for layer in layers:
        if layer.get("type") != "raster":
            continue
        source_name = layer.get("source")
        source = sources.get(source_name)
        if source is None or source.get("type") != "raster":
            raise ValidationError(f"Invalid raster source: {source_name}")
        if not source.get("tiles"):
            raise ValidationError(f"Raster source {source_name} has no tiles")


def render_to_svg(
    style: StyleInput,
    width: Optional[float] = None,
    height: Optional[float] = None,
    lon: Optional[float] = None,
    lat: Optional[float] = None,
    zoom: Optional[float] = None,
    scale: Optional[float] = None,
    fetcher: Optional[ByteSource] = None,
    config: Optional[RenderConfig] = None,
) -> str:
    """Render a style for a viewport to SVG.

    Unset viewport values come from the config (1024x1024 at zoom 2
    centered on 0, 0 by default). Input is validated before any tile is
    fetched.

    Args:
        style: Style dict, JSON string or path to a style file
        width: Canvas width in pixels
        height: Canvas height in pixels
        lon: Center longitude
        lat: Center latitude
        zoom: Zoom level
        scale: Output scale factor
        fetcher: Byte source; defaults to an HTTP TileFetcher
        config: Render configuration

    Returns:
        SVG text

    Raises:
        ValidationError: On invalid input
        RenderError: On any other fatal error
    """
    config = config or RenderConfig()
    width = config.output.width if width is None else width
    height = config.output.height if height is None else height
    scale = config.output.scale if scale is None else scale
    lon = config.view.lon if lon is None else lon
    lat = config.view.lat if lat is None else lat
    zoom = config.view.zoom if zoom is None else zoom

    if not width > 0:
        raise ValidationError("width must be positive")
    if not height > 0:
        raise ValidationError("height must be positive")
    if not scale > 0:
        raise ValidationError("scale must be positive")
    if zoom < 0:
        raise ValidationError("zoom must not be negative")

    style = load_style(style)
    validate_style(style)

    renderer = SVGRenderer(width, height, scale)
    view = View(center=(lon, lat), zoom=zoom)

    if fetcher is not None:
        job = RenderJob(style, view, renderer, fetcher, config.fetch.workers)
        return render_map(job)

    with TileFetcher(config.fetch) as http_fetcher:
        job = RenderJob(style, view, renderer, http_fetcher, config.fetch.workers)
        return render_map(job)
