"""
Exception hierarchy for the SVG rendering pipeline.

Fatal errors abort a render job; nothing partial is returned to the caller.
Degraded conditions (a tile that cannot be fetched, a layer without data)
are handled where they occur and never surface as exceptions.
"""


class RenderError(Exception):
    """Base class for all fatal render errors."""


class ValidationError(RenderError, ValueError):
    """Invalid job input, detected before any tile is fetched."""


class ExpressionError(ValidationError):
    """A style expression could not be parsed or evaluated."""


class DecodeError(RenderError):
    """A vector tile contained data that cannot be decoded."""


class UnsupportedLayerError(RenderError):
    """A style layer uses a type the renderer does not know about."""

    def __init__(self, layer_type: str):
        super().__init__(f"Unsupported layer type: {layer_type}")
        self.layer_type = layer_type
