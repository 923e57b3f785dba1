"""
Style expression evaluator.

Compiles MapLibre style property values (plain constants, expression
arrays and legacy "stops" function objects) into StyleExpression objects
that report their dependency kind and evaluate against a zoom level and
a feature.

Kinds:
- constant: depends on nothing
- camera: depends on zoom only
- source: depends on feature data only
- composite: depends on both

Only the subset of the expression language used by paint and layout
properties of background, fill, line, circle and raster layers is
implemented. A different evaluator can be plugged into StyleLayer through
its compile_expression argument as long as it returns objects with the
same kind/evaluate interface.

Usage:
    expr = normalize_property_expression(
        ["interpolate", ["linear"], ["zoom"], 5, 1, 10, 4], {"type": "number", "default": 1}
    )
    expr.kind                      # "camera"
    expr.evaluate({"zoom": 7.5})   # 2.5
"""

import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

from loguru import logger

from .color import Color
from .errors import ExpressionError
from .geometry import Feature, number_to_string


@dataclass
class EvaluationContext:
    """Inputs available while evaluating one expression."""

    globals: dict[str, Any] = field(default_factory=dict)
    feature: Optional[Feature] = None
    feature_state: dict[str, Any] = field(default_factory=dict)
    available_images: list[str] = field(default_factory=list)
    bindings: dict[str, Any] = field(default_factory=dict)

    @property
    def properties(self) -> dict[str, Any]:
        return self.feature.properties if self.feature is not None else {}


Node = Callable[[EvaluationContext], Any]


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Color):
        return "color"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool) or isinstance(value, (int, float)):
        return number_to_string(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Color):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def _truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return value not in (None, False, 0, "")


def _js_round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _comparable(a: Any, b: Any) -> bool:
    return _type_name(a) == _type_name(b)


def _number(value: Any, op: str) -> float:
    if _type_name(value) != "number":
        raise ExpressionError(f'"{op}" expected a number but found {_type_name(value)}')
    return value


class UnitBezier:
    """Cubic bezier easing curve from (0, 0) to (1, 1)."""

    def __init__(self, p1x: float, p1y: float, p2x: float, p2y: float):
        self.cx = 3.0 * p1x
        self.bx = 3.0 * (p2x - p1x) - self.cx
        self.ax = 1.0 - self.cx - self.bx
        self.cy = 3.0 * p1y
        self.by = 3.0 * (p2y - p1y) - self.cy
        self.ay = 1.0 - self.cy - self.by

    def _sample_x(self, t: float) -> float:
        return ((self.ax * t + self.bx) * t + self.cx) * t

    def _sample_y(self, t: float) -> float:
        return ((self.ay * t + self.by) * t + self.cy) * t

    def _sample_dx(self, t: float) -> float:
        return (3.0 * self.ax * t + 2.0 * self.bx) * t + self.cx

    def _solve_x(self, x: float, epsilon: float = 1e-6) -> float:
        # Newton's method first, bisection as fallback
        t = x
        for _ in range(8):
            error = self._sample_x(t) - x
            if abs(error) < epsilon:
                return t
            derivative = self._sample_dx(t)
            if abs(derivative) < 1e-6:
                break
            t -= error / derivative

        low, high = 0.0, 1.0
        t = x
        if t < low:
            return low
        if t > high:
            return high
        while low < high:
            value = self._sample_x(t)
            if abs(value - x) < epsilon:
                return t
            if x > value:
                low = t
            else:
                high = t
            t = (high - low) * 0.5 + low
            if high - low < epsilon:
                break
        return t

    def solve(self, x: float) -> float:
        return self._sample_y(self._solve_x(x))


def interpolation_factor(interpolation: list, value: float, lower: float, upper: float) -> float:
    """Progress of value between two stops for an interpolation type."""
    difference = upper - lower
    if difference == 0:
        return 0.0
    progress = value - lower
    kind = interpolation[0]
    if kind == "linear":
        return progress / difference
    if kind == "exponential":
        base = interpolation[1]
        if base == 1:
            return progress / difference
        return (math.pow(base, progress) - 1) / (math.pow(base, difference) - 1)
    if kind == "cubic-bezier":
        return UnitBezier(*interpolation[1:5]).solve(progress / difference)
    raise ExpressionError(f"Unknown interpolation type: {kind}")


def interpolate_values(a: Any, b: Any, t: float) -> Any:
    """Blend numbers, number arrays or colors."""
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a + (b - a) * t
    if isinstance(a, (Color, str)) and isinstance(b, (Color, str)):
        ca = Color.parse(a)
        cb = Color.parse(b)
        return Color(
            ca.r + (cb.r - ca.r) * t,
            ca.g + (cb.g - ca.g) * t,
            ca.b + (cb.b - ca.b) * t,
            ca.alpha + (cb.alpha - ca.alpha) * t,
        )
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)) and len(a) == len(b):
        return [interpolate_values(x, y, t) for x, y in zip(a, b)]
    raise ExpressionError(f"Cannot interpolate between {a!r} and {b!r}")


def _find_stop(inputs: list[float], value: float) -> int:
    """Index of the last stop input <= value (0 when value is below all)."""
    index = 0
    for i, stop in enumerate(inputs):
        if stop <= value:
            index = i
        else:
            break
    return index


class ExpressionCompiler:
    """Turns expression JSON into a tree of closures.

    Records whether the compiled expression reads the zoom level or
    feature data, which determines its kind.
    """

    def __init__(self):
        self.uses_zoom = False
        self.uses_feature = False

    @property
    def kind(self) -> str:
        if self.uses_zoom and self.uses_feature:
            return "composite"
        if self.uses_zoom:
            return "camera"
        if self.uses_feature:
            return "source"
        return "constant"

    def compile(self, value: Any) -> Node:
        """Compile an expression argument."""
        if isinstance(value, list):
            if not value:
                raise ExpressionError("Expected an array with at least one element")
            op = value[0]
            if isinstance(op, str):
                handler = OPERATORS.get(op)
                if handler is None:
                    raise ExpressionError(f'Unknown expression "{op}"')
                return handler(self, value[1:])
            literal = list(value)
            return lambda ctx: literal
        return lambda ctx: value

    def compile_all(self, values: list) -> list[Node]:
        return [self.compile(v) for v in values]


def _expect_args(op: str, args: list, minimum: int, maximum: Optional[int] = None) -> None:
    if len(args) < minimum or (maximum is not None and len(args) > maximum):
        raise ExpressionError(f'Wrong number of arguments for "{op}": {len(args)}')


# Operator implementations. Each takes the compiler and the raw argument
# list and returns a Node.

def _literal(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("literal", args, 1, 1)
    value = args[0]
    return lambda ctx: value


def _as_object(op: str, value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ExpressionError(f'Expected an object for "{op}", got {_type_name(value)}')
    return value


def _get(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("get", args, 1, 2)
    key = c.compile(args[0])
    if len(args) == 2:
        obj = c.compile(args[1])
        return lambda ctx: _as_object("get", obj(ctx)).get(key(ctx))
    c.uses_feature = True
    return lambda ctx: ctx.properties.get(key(ctx))


def _has(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("has", args, 1, 2)
    key = c.compile(args[0])
    if len(args) == 2:
        obj = c.compile(args[1])
        return lambda ctx: key(ctx) in _as_object("has", obj(ctx))
    c.uses_feature = True
    return lambda ctx: key(ctx) in ctx.properties


def _properties(c: ExpressionCompiler, args: list) -> Node:
    c.uses_feature = True
    return lambda ctx: dict(ctx.properties)


def _id(c: ExpressionCompiler, args: list) -> Node:
    c.uses_feature = True
    return lambda ctx: ctx.feature.id if ctx.feature is not None else None


def _geometry_type(c: ExpressionCompiler, args: list) -> Node:
    c.uses_feature = True
    return lambda ctx: ctx.feature.type if ctx.feature is not None else None


def _feature_state(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("feature-state", args, 1, 1)
    c.uses_feature = True
    key = c.compile(args[0])
    return lambda ctx: ctx.feature_state.get(key(ctx))


def _zoom(c: ExpressionCompiler, args: list) -> Node:
    c.uses_zoom = True
    return lambda ctx: ctx.globals.get("zoom", 0)


def _at(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("at", args, 2, 2)
    index, array = c.compile_all(args)

    def evaluate(ctx):
        i = index(ctx)
        items = array(ctx)
        if not isinstance(i, (int, float)) or not 0 <= i < len(items) or int(i) != i:
            raise ExpressionError(f"Array index out of bounds: {i}")
        return items[int(i)]

    return evaluate


def _in(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("in", args, 2, 2)
    needle, haystack = c.compile_all(args)

    def evaluate(ctx):
        value = needle(ctx)
        container = haystack(ctx)
        if container is None:
            return False
        if isinstance(container, str):
            return isinstance(value, str) and value in container
        return any(_comparable(value, item) and value == item for item in container)

    return evaluate


def _length(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("length", args, 1, 1)
    value = c.compile(args[0])
    return lambda ctx: len(value(ctx))


def _case(c: ExpressionCompiler, args: list) -> Node:
    if len(args) < 3 or len(args) % 2 == 0:
        raise ExpressionError('"case" expects condition/output pairs and a fallback')
    branches = [(c.compile(args[i]), c.compile(args[i + 1])) for i in range(0, len(args) - 1, 2)]
    fallback = c.compile(args[-1])

    def evaluate(ctx):
        for condition, output in branches:
            if condition(ctx) is True:
                return output(ctx)
        return fallback(ctx)

    return evaluate


def _match(c: ExpressionCompiler, args: list) -> Node:
    if len(args) < 4 or len(args) % 2 == 1:
        raise ExpressionError('"match" expects an input, label/output pairs and a fallback')
    value = c.compile(args[0])
    cases = []
    for i in range(1, len(args) - 1, 2):
        labels = args[i] if isinstance(args[i], list) else [args[i]]
        cases.append((labels, c.compile(args[i + 1])))
    fallback = c.compile(args[-1])

    def evaluate(ctx):
        candidate = value(ctx)
        for labels, output in cases:
            for label in labels:
                if _comparable(candidate, label) and candidate == label:
                    return output(ctx)
        return fallback(ctx)

    return evaluate


def _coalesce(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)

    def evaluate(ctx):
        for value in values:
            result = value(ctx)
            if result is not None:
                return result
        return None

    return evaluate


def _step(c: ExpressionCompiler, args: list) -> Node:
    if len(args) < 2 or len(args) % 2 == 1:
        raise ExpressionError('"step" expects an input, a default output and stop/output pairs')
    value = c.compile(args[0])
    outputs = [c.compile(args[1])]
    inputs = [-math.inf]
    for i in range(2, len(args), 2):
        inputs.append(args[i])
        outputs.append(c.compile(args[i + 1]))

    def evaluate(ctx):
        x = _number(value(ctx), "step")
        return outputs[_find_stop(inputs, x)](ctx)

    return evaluate


def _interpolate(c: ExpressionCompiler, args: list) -> Node:
    if len(args) < 4 or len(args) % 2 == 1:
        raise ExpressionError('"interpolate" expects a type, an input and stop/output pairs')
    interpolation = args[0]
    if not isinstance(interpolation, list) or interpolation[0] not in (
        "linear",
        "exponential",
        "cubic-bezier",
    ):
        raise ExpressionError(f"Unknown interpolation type: {interpolation!r}")
    value = c.compile(args[1])
    inputs = [args[i] for i in range(2, len(args), 2)]
    outputs = [c.compile(args[i]) for i in range(3, len(args), 2)]

    def evaluate(ctx):
        x = _number(value(ctx), "interpolate")
        if x <= inputs[0]:
            return outputs[0](ctx)
        if x >= inputs[-1]:
            return outputs[-1](ctx)
        index = _find_stop(inputs, x)
        t = interpolation_factor(interpolation, x, inputs[index], inputs[index + 1])
        return interpolate_values(outputs[index](ctx), outputs[index + 1](ctx), t)

    return evaluate


def _comparison(op: str, compare: Callable[[Any, Any], bool]):
    def build(c: ExpressionCompiler, args: list) -> Node:
        # Optional third argument is a collator, not supported beyond parsing
        _expect_args(op, args, 2, 3)
        left, right = c.compile_all(args[:2])

        def evaluate(ctx):
            a = left(ctx)
            b = right(ctx)
            if not _comparable(a, b):
                return op == "!="
            if op not in ("==", "!=") and _type_name(a) not in ("number", "string"):
                return False
            return compare(a, b)

        return evaluate

    return build


def _all(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)
    return lambda ctx: all(v(ctx) is True for v in values)


def _any(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)
    return lambda ctx: any(v(ctx) is True for v in values)


def _not(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("!", args, 1, 1)
    value = c.compile(args[0])
    return lambda ctx: not value(ctx)


def _arithmetic(op: str, function: Callable, minimum: int = 1, maximum: Optional[int] = None):
    def build(c: ExpressionCompiler, args: list) -> Node:
        _expect_args(op, args, minimum, maximum)
        values = c.compile_all(args)
        return lambda ctx: function(*(_number(v(ctx), op) for v in values))

    return build


def _constant(value: float):
    def build(c: ExpressionCompiler, args: list) -> Node:
        return lambda ctx: value

    return build


def _minus(*values: float) -> float:
    if len(values) == 1:
        return -values[0]
    return values[0] - values[1]


def _divide(a: float, b: float) -> float:
    if b == 0:
        return math.copysign(math.inf, a) if a else math.nan
    return a / b


def _to_number(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)

    def evaluate(ctx):
        for v in values:
            value = v(ctx)
            if value is None:
                return 0
            if isinstance(value, bool):
                return 1 if value else 0
            if isinstance(value, (int, float)):
                return value
            if isinstance(value, str):
                try:
                    return float(value)
                except ValueError:
                    continue
        raise ExpressionError("Could not convert value to number")

    return evaluate


def _to_string_op(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("to-string", args, 1, 1)
    value = c.compile(args[0])
    return lambda ctx: _to_string(value(ctx))


def _to_boolean(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("to-boolean", args, 1, 1)
    value = c.compile(args[0])
    return lambda ctx: _truthy(value(ctx))


def _to_color(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)

    def evaluate(ctx):
        for v in values:
            value = v(ctx)
            try:
                return Color.parse(value)
            except ValueError:
                continue
        raise ExpressionError("Could not parse color")

    return evaluate


def _to_rgba(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("to-rgba", args, 1, 1)
    value = c.compile(args[0])

    def evaluate(ctx):
        color = value(ctx)
        if not isinstance(color, Color):
            raise ExpressionError(f'Expected a color for "to-rgba", got {_type_name(color)}')
        return color.to_list()

    return evaluate


def _assertion(expected: str):

    def build(c: ExpressionCompiler, args: list) -> Node:
        if expected == "array":
            # ["array", value], ["array", type, value], ["array", type, N, value]
            _expect_args(expected, args, 1, 3)
            values = [c.compile(args[-1])]
        else:
            _expect_args(expected, args, 1)
            values = c.compile_all(args)

        def evaluate(ctx):
            for v in values:
                value = v(ctx)
                if _type_name(value) == expected:
                    return value
            raise ExpressionError(f"Expected value to be of type {expected}")

        return evaluate

    return build


def _typeof(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("typeof", args, 1, 1)
    value = c.compile(args[0])
    return lambda ctx: _type_name(value(ctx))


def _concat(c: ExpressionCompiler, args: list) -> Node:
    values = c.compile_all(args)
    return lambda ctx: "".join(_to_string(v(ctx)) for v in values)


def _string_case(upper: bool):
    def build(c: ExpressionCompiler, args: list) -> Node:
        value = c.compile(args[0])
        if upper:
            return lambda ctx: _to_string(value(ctx)).upper()
        return lambda ctx: _to_string(value(ctx)).lower()

    return build


def _rgb(with_alpha: bool):
    def build(c: ExpressionCompiler, args: list) -> Node:
        count = 4 if with_alpha else 3
        _expect_args("rgba" if with_alpha else "rgb", args, count, count)
        values = c.compile_all(args)

        def evaluate(ctx):
            channels = [_number(v(ctx), "rgb") for v in values]
            alpha = channels[3] * 255 if with_alpha else 255
            return Color(channels[0], channels[1], channels[2], alpha)

        return evaluate

    return build


def _let(c: ExpressionCompiler, args: list) -> Node:
    if len(args) < 3 or len(args) % 2 == 0:
        raise ExpressionError('"let" expects name/value pairs and a body')
    bindings = [(args[i], c.compile(args[i + 1])) for i in range(0, len(args) - 1, 2)]
    body = c.compile(args[-1])

    def evaluate(ctx):
        scope = dict(ctx.bindings)
        for name, value in bindings:
            scope[name] = value(ctx)
        return body(replace(ctx, bindings=scope))

    return evaluate


def _var(c: ExpressionCompiler, args: list) -> Node:
    _expect_args("var", args, 1, 1)
    name = args[0]

    def evaluate(ctx):
        if name not in ctx.bindings:
            raise ExpressionError(f'Unknown variable "{name}"')
        return ctx.bindings[name]

    return evaluate


OPERATORS: dict[str, Callable[[ExpressionCompiler, list], Node]] = {
    "literal": _literal,
    "get": _get,
    "has": _has,
    "properties": _properties,
    "id": _id,
    "geometry-type": _geometry_type,
    "feature-state": _feature_state,
    "zoom": _zoom,
    "at": _at,
    "in": _in,
    "length": _length,
    "case": _case,
    "match": _match,
    "coalesce": _coalesce,
    "step": _step,
    "interpolate": _interpolate,
    "let": _let,
    "var": _var,
    "==": _comparison("==", lambda a, b: a == b),
    "!=": _comparison("!=", lambda a, b: a != b),
    "<": _comparison("<", lambda a, b: a < b),
    "<=": _comparison("<=", lambda a, b: a <= b),
    ">": _comparison(">", lambda a, b: a > b),
    ">=": _comparison(">=", lambda a, b: a >= b),
    "all": _all,
    "any": _any,
    "!": _not,
    "+": _arithmetic("+", lambda *v: sum(v)),
    "*": _arithmetic("*", lambda *v: math.prod(v)),
    "-": _arithmetic("-", _minus, 1, 2),
    "/": _arithmetic("/", _divide, 2, 2),
    "%": _arithmetic("%", math.fmod, 2, 2),
    "^": _arithmetic("^", math.pow, 2, 2),
    "abs": _arithmetic("abs", abs, 1, 1),
    "ceil": _arithmetic("ceil", math.ceil, 1, 1),
    "floor": _arithmetic("floor", math.floor, 1, 1),
    "round": _arithmetic("round", _js_round, 1, 1),
    "min": _arithmetic("min", min),
    "max": _arithmetic("max", max),
    "sqrt": _arithmetic("sqrt", math.sqrt, 1, 1),
    "ln": _arithmetic("ln", math.log, 1, 1),
    "log10": _arithmetic("log10", math.log10, 1, 1),
    "log2": _arithmetic("log2", math.log2, 1, 1),
    "pi": _constant(math.pi),
    "e": _constant(math.e),
    "to-number": _to_number,
    "to-string": _to_string_op,
    "to-boolean": _to_boolean,
    "to-color": _to_color,
    "to-rgba": _to_rgba,
    "number": _assertion("number"),
    "string": _assertion("string"),
    "boolean": _assertion("boolean"),
    "array": _assertion("array"),
    "object": _assertion("object"),
    "typeof": _typeof,
    "concat": _concat,
    "downcase": _string_case(upper=False),
    "upcase": _string_case(upper=True),
    "rgb": _rgb(with_alpha=False),
    "rgba": _rgb(with_alpha=True),
}


def is_expression(value: Any) -> bool:
    """Check whether a style value is an expression array."""
    return (
        isinstance(value, list)
        and len(value) > 0
        and isinstance(value[0], str)
        and value[0] in OPERATORS
    )


def is_function(value: Any) -> bool:
    """Check whether a style value is a legacy function object."""
    return isinstance(value, dict) and ("stops" in value or value.get("type") == "identity")


def _compile_function(c: ExpressionCompiler, function: dict, spec: dict) -> Node:
    """Compile a legacy {"stops": ...} function object."""
    interpolatable = spec.get("type") in ("number", "color") or (
        spec.get("type") == "array" and spec.get("value") == "number"
    )
    kind = function.get("type", "exponential" if interpolatable else "interval")
    property_name = function.get("property")
    default = function.get("default", spec.get("default"))
    stops = function.get("stops", [])

    if stops and isinstance(stops[0][0], dict):
        raise ExpressionError("Zoom-and-property functions are not supported")

    if property_name is None:
        c.uses_zoom = True

        def read_input(ctx):
            return ctx.globals.get("zoom", 0)
    else:
        c.uses_feature = True

        def read_input(ctx):
            return ctx.properties.get(property_name)

    if kind == "identity":
        return lambda ctx: default if read_input(ctx) is None else read_input(ctx)

    if not stops:
        raise ExpressionError("Function has no stops")
    inputs = [stop[0] for stop in stops]
    outputs = [stop[1] for stop in stops]

    if kind == "categorical":
        def categorical(ctx):
            value = read_input(ctx)
            for stop_input, output in stops:
                if _comparable(value, stop_input) and value == stop_input:
                    return output
            return default

        return categorical

    if kind == "interval":
        def interval(ctx):
            value = read_input(ctx)
            if _type_name(value) != "number":
                return default
            if value < inputs[0]:
                return outputs[0]
            return outputs[_find_stop(inputs, value)]

        return interval

    if kind == "exponential":
        interpolation = ["exponential", function.get("base", 1)]

        def exponential(ctx):
            value = read_input(ctx)
            if _type_name(value) != "number":
                return default
            if value <= inputs[0]:
                return outputs[0]
            if value >= inputs[-1]:
                return outputs[-1]
            index = _find_stop(inputs, value)
            t = interpolation_factor(interpolation, value, inputs[index], inputs[index + 1])
            return interpolate_values(outputs[index], outputs[index + 1], t)

        return exponential

    raise ExpressionError(f"Unknown function type: {kind}")


class StyleExpression:
    """A compiled property value."""

    def __init__(self, node: Node, kind: str, default: Any = None):
        self._node = node
        self.kind = kind
        self.default = default

    def evaluate(
        self,
        globals: Optional[dict[str, Any]] = None,
        feature: Optional[Feature] = None,
        feature_state: Optional[dict[str, Any]] = None,
        canonical: Any = None,
        available_images: Optional[list[str]] = None,
    ) -> Any:
        """Evaluate the expression.

        Args:
            globals: Global inputs, {"zoom": z}
            feature: Feature for data-driven expressions
            feature_state: Runtime feature state (always empty when rendering)
            canonical: Canonical tile id, unused
            available_images: Image ids known to the style

        Returns:
            The value, or the property default when the expression yields
            null or fails on the feature's data
        """
        ctx = EvaluationContext(
            globals=globals or {},
            feature=feature,
            feature_state=feature_state or {},
            available_images=available_images or [],
        )
        try:
            value = self._node(ctx)
        except (ExpressionError, TypeError, ValueError, ZeroDivisionError) as e:
            if self.kind in ("constant", "camera"):
                raise ExpressionError(str(e)) from e
            logger.debug(f"Expression failed for feature {feature.id if feature else None}: {e}")
            value = None
        return self.default if value is None else value


def normalize_property_expression(value: Any, spec: dict) -> StyleExpression:
    """Compile a style property value.

    Args:
        value: Constant, expression array or legacy function object
        spec: Property specification with "type" and "default"

    Returns:
        StyleExpression

    Raises:
        ExpressionError: If the expression cannot be compiled
    """
    default = spec.get("default")
    compiler = ExpressionCompiler()

    if value is None:
        value = default

    if is_function(value):
        node = _compile_function(compiler, value, spec)
    elif is_expression(value):
        node = compiler.compile(value)
    else:
        node = _literal(compiler, [value])

    return StyleExpression(node, compiler.kind, default)


def compile_expression(value: Any) -> StyleExpression:
    """Compile a bare expression (no property defaults), e.g. a filter."""
    compiler = ExpressionCompiler()
    node = compiler.compile(value)
    return StyleExpression(node, compiler.kind)
