"""
RGBA colors for style evaluation and SVG output.

Channels are stored in the 0-255 range. Alpha may become fractional after
being multiplied with an opacity; it is only rounded when written out.

CSS color strings are parsed with Pillow's ImageColor, extended with the
rgba()/hsla() forms (fractional alpha) that MapLibre styles use.
"""

import colorsys
import re
from typing import Union

from PIL import ImageColor

from .geometry import round_half_up

_NUMBER = r"\s*(-?[\d.]+%?)\s*"
RGBA_PATTERN = re.compile(rf"^rgba?\({_NUMBER},{_NUMBER},{_NUMBER}(?:,{_NUMBER})?\)$")
HSLA_PATTERN = re.compile(rf"^hsla?\({_NUMBER},{_NUMBER},{_NUMBER}(?:,{_NUMBER})?\)$")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _channel(token: str) -> float:
    """rgb() channel: 0-255 or a percentage."""
    if token.endswith("%"):
        return _clamp(float(token[:-1]) * 2.55, 0, 255)
    return _clamp(float(token), 0, 255)


def _alpha(token: str) -> float:
    """CSS alpha (0-1 or a percentage) mapped to 0-255."""
    if token.endswith("%"):
        return _clamp(float(token[:-1]) / 100, 0, 1) * 255
    return _clamp(float(token), 0, 1) * 255


def _percentage(token: str) -> float:
    return _clamp(float(token.rstrip("%")) / 100, 0, 1)


class Color:
    """An RGBA color with 0-255 channels."""

    def __init__(self, r: float, g: float, b: float, a: float = 255):
        self.r = r
        self.g = g
        self.b = b
        self._alpha = a

    @classmethod
    def parse(cls, value: Union["Color", str, list, tuple]) -> "Color":
        """Create a color from a CSS string or an [r, g, b(, a)] sequence.

        Sequences use 0-255 channels and a 0-1 alpha, as in MapLibre's
        rgba expression.

        Raises:
            ValueError: If the value is not a recognizable color
        """
        if isinstance(value, Color):
            return value.clone()
        if isinstance(value, (list, tuple)):
            if len(value) not in (3, 4):
                raise ValueError(f"Invalid color components: {value!r}")
            alpha = value[3] * 255 if len(value) == 4 else 255
            return cls(value[0], value[1], value[2], alpha)
        if not isinstance(value, str):
            raise ValueError(f"Invalid color: {value!r}")

        text = value.strip().lower()
        if text == "transparent":
            return cls(0, 0, 0, 0)

        match = RGBA_PATTERN.match(text)
        if match:
            r, g, b, a = match.groups()
            return cls(_channel(r), _channel(g), _channel(b), _alpha(a) if a else 255)

        match = HSLA_PATTERN.match(text)
        if match:
            h, s, l, a = match.groups()
            red, green, blue = colorsys.hls_to_rgb(
                (float(h.rstrip("%")) % 360) / 360, _percentage(l), _percentage(s)
            )
            return cls(red * 255, green * 255, blue * 255, _alpha(a) if a else 255)

        rgba = ImageColor.getrgb(text)
        return cls(*rgba)

    @property
    def alpha(self) -> float:
        return self._alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        self._alpha = value

    @property
    def rgb(self) -> str:
        """Opaque hex form, e.g. "#FF0000"."""
        return "#" + "".join(_hex_byte(v) for v in (self.r, self.g, self.b))

    @property
    def hex(self) -> str:
        """Hex form with an alpha byte appended when not fully opaque."""
        if self._alpha == 255:
            return self.rgb
        return self.rgb + _hex_byte(self._alpha)

    @property
    def opacity(self) -> float:
        """Alpha as a 0-1 fraction of the rounded alpha byte."""
        return round_half_up(_clamp(self._alpha, 0, 255)) / 255

    @property
    def transparent(self) -> bool:
        return self._alpha <= 0

    def clone(self) -> "Color":
        return Color(self.r, self.g, self.b, self._alpha)

    def to_list(self) -> list[float]:
        """[r, g, b, a] with a in 0-1, the form MapLibre expressions expose."""
        return [self.r, self.g, self.b, self._alpha / 255]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Color):
            return NotImplemented
        return (self.r, self.g, self.b, self._alpha) == (other.r, other.g, other.b, other._alpha)

    def __repr__(self) -> str:
        return f"Color({self.r}, {self.g}, {self.b}, {self._alpha})"

    def __str__(self) -> str:
        r, g, b = (round_half_up(_clamp(v, 0, 255)) for v in (self.r, self.g, self.b))
        return f"rgba({r},{g},{b},{self._alpha / 255:g})"


def _hex_byte(value: float) -> str:
    return f"{round_half_up(_clamp(value, 0, 255)):02X}"


TRANSPARENT = Color(0, 0, 0, 0)
