"""
Tile grid calculation and tile fetching.

Handles the mapping from a viewport (center, zoom, canvas size) to the set
of Web Mercator tiles that cover it, including the pixel offset of every
tile on the output canvas, and the byte source used to download tiles.

Tiles use the 512px reference size at integer zoom levels; fractional
zoom levels scale the tiles of the integer level below.

Usage:
    grid = calculate_tile_grid(800, 600, (13.4, 52.5), zoom=14.2)
    with TileFetcher() as fetcher:
        for tile, response in fetch_tiles(fetcher, url_template, grid):
            ...
"""

import base64
import binascii
import hashlib
import json
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, TypeVar

import requests
from loguru import logger

from .config import FetchConfig
from .geometry import Point2D, project

# 512 (2^9) px is the reference tile size
TILE_SIZE_EXPONENT = 9

T = TypeVar("T")


@dataclass
class TileInfo:
    """A tile of the grid and its top-left corner on the canvas."""

    x: int
    y: int
    offset_x: float
    offset_y: float

    @property
    def offset(self) -> Point2D:
        return Point2D(self.offset_x, self.offset_y)


@dataclass
class TileGrid:
    """All tiles covering a viewport at one zoom level."""

    zoom_level: int
    tile_size: float
    tiles: list[TileInfo] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tiles)


def calculate_tile_grid(
    width: float,
    height: float,
    center: tuple[float, float],
    zoom: float,
    maxzoom: Optional[float] = None,
) -> TileGrid:
    """Compute the tiles covering a viewport.

    Longitudes wrap around the antimeridian: the fetched x is taken modulo
    the number of tiles while the offset keeps the unwrapped position.
    Rows outside the world are dropped.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels
        center: (lon, lat) of the canvas center
        zoom: Map zoom, may be fractional
        maxzoom: Highest zoom level the source provides

    Returns:
        TileGrid with at least one tile
    """
    zoom_level = math.floor(zoom)
    if maxzoom is not None:
        zoom_level = min(zoom_level, math.floor(maxzoom))
    zoom_level = max(zoom_level, 0)

    tile_size = 2 ** (zoom - zoom_level + TILE_SIZE_EXPONENT)
    world_tiles = 2 ** zoom_level
    tile_center = project(center[0], center[1]).scale(world_tiles)

    tile_cols = width / tile_size
    tile_rows = height / tile_size
    tile_min_x = math.floor(tile_center.x - tile_cols / 2)
    tile_min_y = math.floor(tile_center.y - tile_rows / 2)
    tile_max_x = math.floor(tile_center.x + tile_cols / 2)
    tile_max_y = math.floor(tile_center.y + tile_rows / 2)

    def tile_at(x: int, y: int) -> TileInfo:
        return TileInfo(
            x=x % world_tiles,
            y=y,
            offset_x=width / 2 + (x - tile_center.x) * tile_size,
            offset_y=height / 2 + (y - tile_center.y) * tile_size,
        )

    tiles = []
    for x in range(tile_min_x, tile_max_x + 1):
        for y in range(tile_min_y, tile_max_y + 1):
            if 0 <= y < world_tiles:
                tiles.append(tile_at(x, y))

    if not tiles:
        # Viewport entirely beyond the mercator limit: keep the nearest row
        y = min(max(math.floor(tile_center.y), 0), world_tiles - 1)
        tiles.append(tile_at(math.floor(tile_center.x), y))

    return TileGrid(zoom_level=zoom_level, tile_size=tile_size, tiles=tiles)


def quadkey(z: int, x: int, y: int) -> str:
    """Bing-style quadkey for a tile."""
    digits = []
    for i in range(z, 0, -1):
        mask = 1 << (i - 1)
        digit = (1 if x & mask else 0) + (2 if y & mask else 0)
        digits.append(str(digit))
    return "".join(digits)


def tile_url(url_template: str, z: int, x: int, y: int) -> str:
    """Fill a {z}/{x}/{y} URL template."""
    return (
        url_template.replace("{z}", str(z))
        .replace("{x}", str(x))
        .replace("{y}", str(y))
        .replace("{quadkey}", quadkey(z, x, y))
        .replace("{ratio}", "")
    )


@dataclass
class TileResponse:
    """Raw tile payload."""

    content: bytes
    content_type: str = "application/octet-stream"

    def data_uri(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


class ByteSource(Protocol):
    """Anything that can deliver tile bytes. Failures return None."""

    def get(self, url_template: str, z: int, x: int, y: int) -> Optional[TileResponse]:
        ...

    def get_url(self, url: str) -> Optional[TileResponse]:
        ...


class TileFetcher:
    """Fetches tiles over HTTP with an optional on-disk cache."""

    def __init__(self, config: Optional[FetchConfig] = None):
        """Initialize fetcher.

        Args:
            config: Fetch settings (timeouts, cache directory, user agent)
        """
        self.config = config or FetchConfig()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})

        if self.config.cache_dir:
            self.config.cache_dir.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> "TileFetcher":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _cache_path(self, url: str):
        if not self.config.cache_dir:
            return None
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        return self.config.cache_dir / f"{digest}.json"

    def _load_from_cache(self, url: str) -> Optional[TileResponse]:
        cache_path = self._cache_path(url)
        if cache_path and cache_path.exists():
            try:
                entry = json.loads(cache_path.read_text())
                return TileResponse(
                    content=base64.b64decode(entry["body"], validate=True),
                    content_type=entry["content_type"],
                )
            except (ValueError, KeyError, TypeError, binascii.Error) as e:
                logger.warning(f"Ignoring unreadable cache entry {cache_path.name} ({e})")
        return None

    def _save_to_cache(self, url: str, response: TileResponse) -> None:
        cache_path = self._cache_path(url)
        if cache_path:
            entry = {
                "content_type": response.content_type,
                "body": base64.b64encode(response.content).decode("ascii"),
            }
            tmp_path = cache_path.with_name(f"{cache_path.name}.{threading.get_ident()}.tmp")
            tmp_path.write_text(json.dumps(entry))
            tmp_path.replace(cache_path)

    def get_url(self, url: str) -> Optional[TileResponse]:
        """Fetch a URL.

        Returns:
            TileResponse, or None on network errors and non-2xx responses
        """
        cached = self._load_from_cache(url)
        if cached is not None:
            return cached

        try:
            response = self.session.get(url, timeout=self.config.timeout)
        except requests.RequestException as e:
            logger.warning(f"Failed to load tile: {url} ({e})")
            return None

        if not response.ok:
            logger.debug(f"Tile request returned {response.status_code}: {url}")
            return None

        result = TileResponse(
            content=response.content,
            content_type=response.headers.get("content-type", "application/octet-stream"),
        )
        self._save_to_cache(url, result)
        return result

    def get(self, url_template: str, z: int, x: int, y: int) -> Optional[TileResponse]:
        """Fetch a tile by filling the URL template."""
        return self.get_url(tile_url(url_template, z, x, y))


def map_tiles(grid: TileGrid, task: Callable[[TileInfo], T], workers: int = 8) -> list[T]:
    """Run a task for every tile of a grid on a thread pool.

    Blocks until every task has finished. Results come back in grid order
    regardless of completion order; an exception raised by any task
    propagates to the caller.

    Args:
        grid: Tiles to process
        task: Called once per tile
        workers: Maximum concurrent tasks

    Returns:
        One result per tile
    """
    if not grid.tiles:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(grid.tiles)))) as executor:
        return list(executor.map(task, grid.tiles))


def fetch_tiles(
    fetcher: ByteSource,
    url_template: str,
    grid: TileGrid,
    workers: int = 8,
) -> list[tuple[TileInfo, Optional[TileResponse]]]:
    """Fetch all tiles of a grid concurrently.

    Args:
        fetcher: Byte source
        url_template: URL with {z}, {x}, {y} placeholders
        grid: Tiles to fetch
        workers: Maximum concurrent requests

    Returns:
        (tile, response or None) pairs in grid order
    """

    def fetch_one(tile: TileInfo) -> Optional[TileResponse]:
        return fetcher.get(url_template, grid.zoom_level, tile.x, tile.y)

    return list(zip(grid.tiles, map_tiles(grid, fetch_one, workers)))
