"""
Style layer evaluation.

A StyleLayer wraps one entry of a style's "layers" array. All paint and
layout properties known for the layer type are compiled once; every call
to recalculate() resolves them for a zoom level into either a Constant
value or a PerFeature handle that is evaluated per feature on demand.

Property tables follow the MapLibre style specification defaults for the
layer types drawn natively (background, fill, line, circle, raster).
Other layer types have no properties and are skipped by the renderer.

Usage:
    layer = create_style_layer({"id": "water", "type": "fill", "source": "osm",
                                "source-layer": "water",
                                "paint": {"fill-color": "#a0c8f0"}})
    layer.recalculate(zoom=12)
    layer.get_paint("fill-color").rgb   # "#A0C8F0"
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .color import Color
from .errors import ExpressionError
from .expressions import StyleExpression, normalize_property_expression
from .filters import FeatureFilter, feature_filter
from .geometry import Feature


def _number(default: Optional[float]) -> dict:
    return {"type": "number", "default": default}


def _color(default: Optional[str]) -> dict:
    return {"type": "color", "default": default}


def _enum(default: str) -> dict:
    return {"type": "enum", "default": default}


def _translate() -> dict:
    return {"type": "array", "value": "number", "length": 2, "default": [0, 0]}


PAINT_PROPERTIES: dict[str, dict[str, dict]] = {
    "background": {
        "background-color": _color("#000000"),
        "background-opacity": _number(1),
    },
    "fill": {
        "fill-antialias": {"type": "boolean", "default": True},
        "fill-opacity": _number(1),
        "fill-color": _color("#000000"),
        "fill-outline-color": _color(None),
        "fill-translate": _translate(),
        "fill-translate-anchor": _enum("map"),
    },
    "line": {
        "line-opacity": _number(1),
        "line-color": _color("#000000"),
        "line-translate": _translate(),
        "line-translate-anchor": _enum("map"),
        "line-width": _number(1),
        "line-gap-width": _number(0),
        "line-offset": _number(0),
        "line-blur": _number(0),
        "line-dasharray": {"type": "array", "value": "number", "default": None},
    },
    "circle": {
        "circle-radius": _number(5),
        "circle-color": _color("#000000"),
        "circle-blur": _number(0),
        "circle-opacity": _number(1),
        "circle-translate": _translate(),
        "circle-translate-anchor": _enum("map"),
        "circle-pitch-scale": _enum("map"),
        "circle-pitch-alignment": _enum("viewport"),
        "circle-stroke-width": _number(0),
        "circle-stroke-color": _color("#000000"),
        "circle-stroke-opacity": _number(1),
    },
    "raster": {
        "raster-opacity": _number(1),
        "raster-hue-rotate": _number(0),
        "raster-brightness-min": _number(0),
        "raster-brightness-max": _number(1),
        "raster-saturation": _number(0),
        "raster-contrast": _number(0),
        "raster-resampling": _enum("linear"),
        "raster-fade-duration": _number(300),
    },
}

LAYOUT_PROPERTIES: dict[str, dict[str, dict]] = {
    "fill": {
        "fill-sort-key": _number(None),
    },
    "line": {
        "line-cap": _enum("butt"),
        "line-join": _enum("miter"),
        "line-miter-limit": _number(2),
        "line-round-limit": _number(1.05),
        "line-sort-key": _number(None),
    },
    "circle": {
        "circle-sort-key": _number(None),
    },
}


@dataclass(frozen=True)
class Constant:
    """A property value that is the same for every feature."""

    value: Any


@dataclass(frozen=True)
class PerFeature:
    """A data-driven property value, evaluated per feature."""

    expression: StyleExpression
    globals: dict


Resolved = Union[Constant, PerFeature]
ExpressionCompilerFn = Callable[[Any, dict], StyleExpression]


class StyleLayer:
    """One style layer with compiled and resolved properties."""

    def __init__(
        self,
        layer: dict,
        compile_expression: ExpressionCompilerFn = normalize_property_expression,
    ):
        """Compile a style layer.

        Args:
            layer: Layer object from the style JSON
            compile_expression: Compiles (value, property spec) into an
                object with .kind and .evaluate()

        Raises:
            ExpressionError: If a property or the filter cannot be compiled
        """
        self.id: str = layer.get("id", "")
        self.type: str = layer.get("type", "")
        self.source: Optional[str] = layer.get("source")
        self.source_layer: Optional[str] = layer.get("source-layer")
        self.minzoom: Optional[float] = layer.get("minzoom")
        self.maxzoom: Optional[float] = layer.get("maxzoom")

        layout = layer.get("layout") or {}
        paint = layer.get("paint") or {}
        self.visibility: str = layout.get("visibility", "visible")
        self.filter: FeatureFilter = feature_filter(layer.get("filter"))

        self._paint_specs = PAINT_PROPERTIES.get(self.type, {})
        self._layout_specs = LAYOUT_PROPERTIES.get(self.type, {})
        self._paint_expressions = {
            key: compile_expression(paint.get(key), spec)
            for key, spec in self._paint_specs.items()
        }
        self._layout_expressions = {
            key: compile_expression(layout.get(key), spec)
            for key, spec in self._layout_specs.items()
        }

        self.zoom: Optional[float] = None
        self._paint: dict[str, Resolved] = {}
        self._layout: dict[str, Resolved] = {}

    def __repr__(self) -> str:
        return f"StyleLayer(id={self.id!r}, type={self.type!r})"

    def is_hidden(self, zoom: float) -> bool:
        """Check whether the layer is invisible at a zoom level."""
        if self.minzoom is not None and zoom < self.minzoom:
            return True
        if self.maxzoom is not None and zoom >= self.maxzoom:
            return True
        return self.visibility == "none"

    def recalculate(self, zoom: float, available_images: Optional[list[str]] = None) -> None:
        """Resolve all properties for a zoom level.

        Zoom-only expressions are evaluated here; data-driven ones are kept
        as PerFeature handles.
        """
        self.zoom = zoom
        self._paint = self._resolve(self._paint_expressions, self._paint_specs, zoom, available_images)
        self._layout = self._resolve(
            self._layout_expressions, self._layout_specs, zoom, available_images
        )

    @staticmethod
    def _resolve(
        expressions: dict[str, StyleExpression],
        specs: dict[str, dict],
        zoom: float,
        available_images: Optional[list[str]],
    ) -> dict[str, Resolved]:
        globals = {"zoom": zoom}
        resolved: dict[str, Resolved] = {}
        for key, expression in expressions.items():
            if expression.kind in ("constant", "camera"):
                value = expression.evaluate(globals, available_images=available_images)
                resolved[key] = Constant(_convert(value, specs[key]))
            else:
                resolved[key] = PerFeature(expression, globals)
        return resolved

    def get_paint(self, key: str, feature: Optional[Feature] = None) -> Any:
        """Get a paint property value, evaluated for a feature when data-driven."""
        return self._get(self._paint, self._paint_specs, key, feature)

    def get_layout(self, key: str, feature: Optional[Feature] = None) -> Any:
        """Get a layout property value, evaluated for a feature when data-driven."""
        return self._get(self._layout, self._layout_specs, key, feature)

    def _get(
        self,
        resolved: dict[str, Resolved],
        specs: dict[str, dict],
        key: str,
        feature: Optional[Feature],
    ) -> Any:
        if self.zoom is None:
            raise RuntimeError(f"Layer {self.id} used before recalculate()")
        if key not in resolved:
            raise KeyError(f"Layer type {self.type} has no property {key}")

        value = resolved[key]
        if isinstance(value, Constant):
            result = value.value
            return result.clone() if isinstance(result, Color) else result
        if isinstance(value, PerFeature):
            result = value.expression.evaluate(value.globals, feature, {})
            return _convert(result, specs[key])
        raise TypeError(f"Unexpected resolved value: {value!r}")


def _convert(value: Any, spec: dict) -> Any:
    if spec.get("type") == "color" and value is not None:
        try:
            return Color.parse(value)
        except ValueError as e:
            raise ExpressionError(f"Invalid color {value!r}") from e
    return value


def create_style_layer(
    layer: dict,
    compile_expression: ExpressionCompilerFn = normalize_property_expression,
) -> StyleLayer:
    """Create a StyleLayer from a style layer object."""
    return StyleLayer(layer, compile_expression=compile_expression)


def get_layer_styles(
    style: dict,
    compile_expression: ExpressionCompilerFn = normalize_property_expression,
) -> list[StyleLayer]:
    """Compile all layers of a style, in declaration order."""
    return [create_style_layer(layer, compile_expression) for layer in style.get("layers", [])]
