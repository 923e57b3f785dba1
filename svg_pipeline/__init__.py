"""
Static SVG Map Rendering Pipeline

Renders MapLibre-compatible styles to static SVG documents, headless and
deterministic:
- Mapbox Vector Tiles and GeoJSON sources, projected to Web Mercator
- Polygon fragments reassembled across tile boundaries
- Background, fill, line, circle and raster layers with zoom and
  data-driven paint properties
- Compact output: features batched by style, connected line segments
  chained, path commands in their shortest form

Usage:
    from svg_pipeline import render_to_svg

    svg = render_to_svg(style, width=800, height=600, lon=8.54, lat=47.37, zoom=13)

    # Command line
    svg-pipeline render --style style.json --lon 8.54 --lat 47.37 --zoom 13 -o map.svg
"""

from .color import Color
from .config import FetchConfig, OutputConfig, RenderConfig, ViewConfig
from .errors import (
    DecodeError,
    ExpressionError,
    RenderError,
    UnsupportedLayerError,
    ValidationError,
)
from .geometry import Feature, Features, Point2D, project, unproject
from .job import RenderJob, View
from .render import load_style, render_map, render_to_svg
from .style_layer import StyleLayer, create_style_layer, get_layer_styles
from .svg_renderer import SVGRenderer
from .tiles import TileFetcher, TileResponse, calculate_tile_grid

__version__ = "0.1.0"

__all__ = [
    # Public API
    "render_to_svg",
    "render_map",
    "load_style",
    "RenderJob",
    "View",
    # Configuration
    "RenderConfig",
    "FetchConfig",
    "OutputConfig",
    "ViewConfig",
    # Errors
    "RenderError",
    "ValidationError",
    "ExpressionError",
    "DecodeError",
    "UnsupportedLayerError",
    # Building blocks
    "Color",
    "Feature",
    "Features",
    "Point2D",
    "project",
    "unproject",
    "StyleLayer",
    "create_style_layer",
    "get_layer_styles",
    "SVGRenderer",
    "TileFetcher",
    "TileResponse",
    "calculate_tile_grid",
]
