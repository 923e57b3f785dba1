"""
Render job description shared by the source loaders and the orchestrator.
"""

from dataclasses import dataclass

from .svg_renderer import SVGRenderer
from .tiles import ByteSource


@dataclass
class View:
    """Map camera: center (lon, lat) in degrees and zoom level."""

    center: tuple[float, float]
    zoom: float


@dataclass
class RenderJob:
    """Everything needed for one render. A job is used once."""

    style: dict
    view: View
    renderer: SVGRenderer
    fetcher: ByteSource
    workers: int = 8

    @property
    def width(self) -> float:
        return self.renderer.width

    @property
    def height(self) -> float:
        return self.renderer.height
