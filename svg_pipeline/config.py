"""
Render configuration dataclasses.

Centralizes the tunable parameters of a render: tile fetching (timeouts,
parallelism, caching) and the default viewport used when a caller leaves
values unspecified.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class FetchConfig:
    """Settings for the tile byte source."""

    timeout: float = 30.0  # Seconds per request
    workers: int = 8  # Concurrent tile requests per source
    user_agent: str = "svg-pipeline/0.1 (+https://github.com/example/svg-pipeline)"

    # On-disk response cache (None = no caching)
    cache_dir: Optional[Path] = None


@dataclass
class OutputConfig:
    """Default output canvas."""

    width: int = 1024
    height: int = 1024
    scale: float = 1.0


@dataclass
class ViewConfig:
    """Default map view."""

    lon: float = 0.0
    lat: float = 0.0
    zoom: float = 2.0


@dataclass
class RenderConfig:
    """Master configuration for a render."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
