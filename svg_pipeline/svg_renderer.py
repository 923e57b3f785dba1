"""
SVG rendering engine.

Accumulates draw calls into an SVG document. Features are drawn in
batches: within one draw call all features with the same visual style
share a single <path> element (fills and lines) or a common attribute set
(circles), which keeps documents small for dense vector data.

Coordinates are multiplied by the output scale and rounded to tenths of a
pixel before batching, so identical points of adjacent features compare
equal and line segments can be chained.

Usage:
    renderer = SVGRenderer(width=800, height=600)
    renderer.draw_background_fill(BackgroundStyle(Color.parse("#eee"), 1))
    renderer.draw_polygons([(feature, FillStyle(Color.parse("#9c9")))], opacity=1)
    svg = renderer.get_string()
"""

from dataclasses import dataclass, field
from typing import Optional

from .color import TRANSPARENT, Color
from .geometry import Feature, number_to_string, round_half_up, to_fixed
from .svg_path import Segment, chain_segments, format_num, segments_to_path


@dataclass
class BackgroundStyle:
    color: Color
    opacity: float = 1.0


@dataclass
class FillStyle:
    color: Color
    translate: tuple[float, float] = (0, 0)


@dataclass
class LineStyle:
    color: Color
    width: float = 1.0
    cap: str = "butt"
    join: str = "miter"
    miter_limit: float = 2.0
    dasharray: Optional[list[float]] = None
    translate: tuple[float, float] = (0, 0)


@dataclass
class CircleStyle:
    color: Color
    radius: float = 5.0
    stroke_width: float = 0.0
    stroke_color: Color = field(default_factory=lambda: Color(0, 0, 0))
    translate: tuple[float, float] = (0, 0)


@dataclass
class RasterStyle:
    opacity: float = 1.0
    hue_rotate: float = 0.0
    brightness_min: float = 0.0
    brightness_max: float = 1.0
    saturation: float = 0.0
    contrast: float = 0.0
    resampling: str = "linear"


@dataclass
class RasterTile:
    """A raster image placed on the canvas (unscaled pixel units)."""

    x: float
    y: float
    width: float
    height: float
    data_uri: str


@dataclass
class _Batch:
    attrs: str
    segments: list[Segment] = field(default_factory=list)


def fill_attr(color: Color) -> str:
    attr = f'fill="{color.rgb}"'
    if color.alpha < 255:
        attr += f' fill-opacity="{to_fixed(color.opacity)}"'
    return attr


def stroke_attr(color: Color, width: str) -> str:
    attr = f'stroke="{color.rgb}" stroke-width="{width}"'
    if color.alpha < 255:
        attr += f' stroke-opacity="{to_fixed(color.opacity)}"'
    return attr


class SVGRenderer:
    """Builds one SVG document. Not reusable across renders."""

    def __init__(self, width: float, height: float, scale: float = 1.0):
        """Initialize renderer.

        Args:
            width: Canvas width in CSS pixels
            height: Canvas height in CSS pixels
            scale: Output scale; the document is width*scale x height*scale
        """
        self.width = width
        self.height = height
        self.scale = scale
        self._svg: list[str] = []
        self._background_color = TRANSPARENT.clone()

    @property
    def output_width(self) -> int:
        return round_half_up(self.width * self.scale)

    @property
    def output_height(self) -> int:
        return round_half_up(self.height * self.scale)

    def _round_xy(self, x: float, y: float) -> tuple[int, int]:
        return (round_half_up(x * self.scale * 10), round_half_up(y * self.scale * 10))

    def _round_value(self, value: float) -> str:
        return to_fixed(value * self.scale)

    def _translate_attr(self, translate: tuple[float, float]) -> str:
        if translate[0] == 0 and translate[1] == 0:
            return ""
        x, y = self._round_xy(translate[0], translate[1])
        return f' transform="translate({format_num(x)},{format_num(y)})"'

    def draw_background_fill(self, style: BackgroundStyle) -> None:
        """Set the background. A later call replaces an earlier one."""
        color = style.color.clone()
        color.alpha *= style.opacity
        self._background_color = color

    def draw_polygons(self, features: list[tuple[Feature, FillStyle]], opacity: float) -> None:
        """Draw polygon features, one <path> per distinct fill."""
        if not features or opacity <= 0:
            return

        batches: dict[str, _Batch] = {}
        for feature, style in features:
            if style.color.transparent:
                continue
            translate = self._translate_attr(style.translate)
            key = style.color.hex + translate
            if key not in batches:
                batches[key] = _Batch(attrs=fill_attr(style.color) + translate)
            for ring in feature.geometry:
                batches[key].segments.append([self._round_xy(p.x, p.y) for p in ring])

        self._svg.append(f'<g opacity="{number_to_string(opacity)}">')
        for batch in batches.values():
            d = segments_to_path(batch.segments, close=True)
            self._svg.append(f'<path d="{d}" {batch.attrs} />')
        self._svg.append("</g>")

    def draw_line_strings(self, features: list[tuple[Feature, LineStyle]], opacity: float) -> None:
        """Draw line features, chaining connected segments of each stroke."""
        if not features or opacity <= 0:
            return

        batches: dict[tuple, _Batch] = {}
        for feature, style in features:
            if style.width <= 0 or style.color.transparent:
                continue
            translate = self._translate_attr(style.translate)
            width = self._round_value(style.width)
            dasharray = ""
            if style.dasharray:
                dashes = ",".join(self._round_value(d * style.width) for d in style.dasharray)
                dasharray = f' stroke-dasharray="{dashes}"'
            miter_limit = number_to_string(style.miter_limit)

            key = (style.color.hex, width, style.cap, style.join, miter_limit, dasharray, translate)
            if key not in batches:
                attrs = " ".join(
                    [
                        'fill="none"',
                        stroke_attr(style.color, width),
                        f'stroke-linecap="{style.cap}"',
                        f'stroke-linejoin="{style.join}"',
                        f'stroke-miterlimit="{miter_limit}"',
                    ]
                )
                batches[key] = _Batch(attrs=attrs + dasharray + translate)
            for line in feature.geometry:
                batches[key].segments.append([self._round_xy(p.x, p.y) for p in line])

        self._svg.append(f'<g opacity="{number_to_string(opacity)}">')
        for batch in batches.values():
            d = segments_to_path(chain_segments(batch.segments))
            self._svg.append(f'<path d="{d}" {batch.attrs} />')
        self._svg.append("</g>")

    def draw_circles(self, features: list[tuple[Feature, CircleStyle]], opacity: float) -> None:
        """Draw point features as circles."""
        if not features or opacity <= 0:
            return

        batches: dict[tuple, _Batch] = {}
        for feature, style in features:
            if style.radius <= 0 or style.color.transparent:
                continue
            translate = self._translate_attr(style.translate)
            radius = self._round_value(style.radius)
            stroke = ""
            if style.stroke_width > 0:
                stroke = " " + stroke_attr(style.stroke_color, self._round_value(style.stroke_width))

            key = (style.color.hex, radius, stroke, translate)
            if key not in batches:
                batches[key] = _Batch(attrs=f'r="{radius}" {fill_attr(style.color)}{stroke}{translate}')
            for ring in feature.geometry:
                if ring:
                    batches[key].segments.append([self._round_xy(ring[0].x, ring[0].y)])

        self._svg.append(f'<g opacity="{number_to_string(opacity)}">')
        for batch in batches.values():
            for ((x, y),) in batch.segments:
                self._svg.append(f'<circle cx="{format_num(x)}" cy="{format_num(y)}" {batch.attrs} />')
        self._svg.append("</g>")

    def draw_raster_tiles(self, tiles: list[RasterTile], style: RasterStyle) -> None:
        """Composite raster tiles as embedded images."""
        if not tiles or style.opacity <= 0:
            return

        filters = []
        if style.hue_rotate != 0:
            filters.append(f"hue-rotate({number_to_string(style.hue_rotate)}deg)")
        if style.saturation != 0:
            filters.append(f"saturate({number_to_string(style.saturation + 1)})")
        if style.contrast != 0:
            filters.append(f"contrast({number_to_string(style.contrast + 1)})")
        if style.brightness_min != 0 or style.brightness_max != 1:
            brightness = (style.brightness_min + style.brightness_max) / 2
            filters.append(f"brightness({number_to_string(brightness)})")

        group_attrs = f'opacity="{number_to_string(style.opacity)}"'
        if filters:
            group_attrs += f' filter="{" ".join(filters)}"'
        self._svg.append(f"<g {group_attrs}>")

        pixelated = style.resampling == "nearest"
        for tile in tiles:
            # Slight overlap hides hairline gaps between neighbouring tiles
            overlap = min(tile.width, tile.height) / 10000
            attrs = (
                f'x="{self._round_value(tile.x - overlap)}" '
                f'y="{self._round_value(tile.y - overlap)}" '
                f'width="{self._round_value(tile.width + overlap * 2)}" '
                f'height="{self._round_value(tile.height + overlap * 2)}" '
                f'href="{tile.data_uri}"'
            )
            if pixelated:
                attrs += ' style="image-rendering:pixelated"'
            self._svg.append(f"<image {attrs} />")

        self._svg.append("</g>")

    def get_string(self) -> str:
        """Serialize the document."""
        w = self.output_width
        h = self.output_height
        parts = [
            f'<svg viewBox="0 0 {w} {h}" width="{w}" height="{h}" xmlns="http://www.w3.org/2000/svg">',
            f'<defs><clipPath id="vb"><rect width="{w}" height="{h}"/></clipPath></defs>',
            '<g clip-path="url(#vb)">',
        ]
        if not self._background_color.transparent:
            parts.append(
                f'<rect x="-1" y="-1" width="{w + 2}" height="{h + 2}" '
                f"{fill_attr(self._background_color)} />"
            )
        parts.extend(self._svg)
        parts.extend(["</g>", "</svg>"])
        return "\n".join(parts)
