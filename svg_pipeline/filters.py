"""
Feature filter compiler.

Accepts both filter syntaxes found in styles: expression filters
(["==", ["get", "class"], "park"]) and legacy filters
(["==", "class", "park"], ["in", "$type", "Point", "LineString"]).
Legacy filters are converted to expressions first, so both are
evaluated by the same engine.
"""

from typing import Any, Optional

from .expressions import StyleExpression, compile_expression
from .geometry import Feature

COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")


def is_expression_filter(filter_spec: Any) -> bool:
    """Detect whether a filter uses expression syntax rather than the legacy one."""
    if filter_spec is True or filter_spec is False:
        return True
    if not isinstance(filter_spec, list) or not filter_spec:
        return False

    op = filter_spec[0]
    if op == "has":
        return len(filter_spec) >= 2 and filter_spec[1] not in ("$id", "$type")
    if op == "in":
        return len(filter_spec) >= 3 and (
            not isinstance(filter_spec[1], str) or isinstance(filter_spec[2], list)
        )
    if op in ("!in", "!has", "none"):
        return False
    if op in COMPARISON_OPS:
        return len(filter_spec) != 3 or isinstance(filter_spec[1], list) or isinstance(
            filter_spec[2], list
        )
    if op in ("any", "all"):
        return all(
            isinstance(child, bool) or is_expression_filter(child) for child in filter_spec[1:]
        )
    return True


def _getter(key: str) -> list:
    if key == "$type":
        return ["geometry-type"]
    if key == "$id":
        return ["id"]
    return ["get", key]


def _value(value: Any) -> Any:
    return ["literal", value] if isinstance(value, (list, dict)) else value


def _convert_has(key: str) -> Any:
    if key == "$type":
        return True
    if key == "$id":
        return ["!=", ["id"], None]
    return ["has", key]


def _convert_in(key: str, values: list) -> list:
    if not values:
        return ["all", False]
    getter = _getter(key)
    return ["any"] + [["==", getter, _value(v)] for v in values]


def convert_legacy_filter(filter_spec: Any) -> Any:
    """Convert a legacy filter to an equivalent expression."""
    if filter_spec is None or filter_spec is True:
        return True
    if filter_spec is False:
        return False
    if not isinstance(filter_spec, list) or not filter_spec:
        return True

    op = filter_spec[0]
    if len(filter_spec) <= 1:
        return op != "any"

    if op in COMPARISON_OPS:
        _, key, value = filter_spec
        return [op, _getter(key), _value(value)]
    if op == "any":
        return ["any"] + [convert_legacy_filter(f) for f in filter_spec[1:]]
    if op == "all":
        return ["all"] + [convert_legacy_filter(f) for f in filter_spec[1:]]
    if op == "none":
        return ["!", ["any"] + [convert_legacy_filter(f) for f in filter_spec[1:]]]
    if op == "in":
        return _convert_in(filter_spec[1], filter_spec[2:])
    if op == "!in":
        return ["!", _convert_in(filter_spec[1], filter_spec[2:])]
    if op == "has":
        return _convert_has(filter_spec[1])
    if op == "!has":
        return ["!", _convert_has(filter_spec[1])]
    return True


class FeatureFilter:
    """A compiled filter."""

    def __init__(self, expression: Optional[StyleExpression]):
        self.expression = expression

    @property
    def needs_feature(self) -> bool:
        return self.expression is not None and self.expression.kind in ("source", "composite")

    def filter(self, globals: dict[str, Any], feature: Feature) -> bool:
        """Check whether a feature passes the filter."""
        if self.expression is None:
            return True
        return self.expression.evaluate(globals, feature) is True


def feature_filter(filter_spec: Any) -> FeatureFilter:
    """Compile a style layer filter.

    Args:
        filter_spec: Filter from the style (expression or legacy), or None

    Returns:
        FeatureFilter; None compiles to a filter that accepts everything

    Raises:
        ExpressionError: If the filter cannot be compiled
    """
    if filter_spec is None:
        return FeatureFilter(None)
    if not is_expression_filter(filter_spec):
        filter_spec = convert_legacy_filter(filter_spec)
    if isinstance(filter_spec, bool):
        return FeatureFilter(compile_expression(["literal", filter_spec]))
    return FeatureFilter(compile_expression(filter_spec))
