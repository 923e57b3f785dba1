#!/usr/bin/env python3
"""Tests for the tile grid calculator and the HTTP tile fetcher."""
import math
import threading
import time
from unittest import mock

import pytest
import requests

from svg_pipeline.config import FetchConfig
from svg_pipeline.geometry import project
from svg_pipeline.tiles import (
    TileFetcher,
    TileGrid,
    TileInfo,
    calculate_tile_grid,
    fetch_tiles,
    map_tiles,
    quadkey,
    tile_url,
)

from conftest import FakeFetcher


class TestCalculateTileGrid:
    """Tests for viewport to tile grid mapping."""

    def test_zoom_level_and_tile_size(self):
        """Test fractional zooms scale the tiles of the level below."""
        grid = calculate_tile_grid(512, 512, (0, 0), 2.5)
        assert grid.zoom_level == 2
        assert grid.tile_size == pytest.approx(2 ** 9.5)

    def test_maxzoom_caps_zoom_level(self):
        """Test the source maxzoom limits the fetched level and enlarges tiles."""
        grid = calculate_tile_grid(512, 512, (0, 0), 16, maxzoom=14)
        assert grid.zoom_level == 14
        assert grid.tile_size == pytest.approx(2048)

    @pytest.mark.parametrize("zoom", [0, 1, 2.3, 5, 10.7, 14])
    def test_zoom_level_invariant(self, zoom):
        """Test zoom_level == min(floor(zoom), maxzoom)."""
        grid = calculate_tile_grid(800, 600, (8.54, 47.37), zoom, maxzoom=12)
        assert grid.zoom_level == min(math.floor(zoom), 12)
        assert grid.tile_size == pytest.approx(2 ** (zoom - grid.zoom_level + 9))

    def test_single_tile_at_zoom_zero(self):
        """Test a canvas smaller than the world at zoom 0 needs only the world tile."""
        grid = calculate_tile_grid(256, 256, (0, 0), 0)
        assert [(t.x, t.y) for t in grid.tiles] == [(0, 0)]
        assert grid.tiles[0].offset_x == pytest.approx(-128)

    def test_offsets_place_center_in_canvas_center(self):
        """Test the tile containing the center point is placed around the canvas center."""
        width, height, zoom = 800, 600, 10
        center = (8.54, 47.37)
        grid = calculate_tile_grid(width, height, center, zoom)
        world = project(*center).scale(2 ** grid.zoom_level)
        cx, cy = math.floor(world.x), math.floor(world.y)
        tile = next(t for t in grid.tiles if (t.x, t.y) == (cx, cy))
        assert tile.offset_x <= width / 2 <= tile.offset_x + grid.tile_size
        assert tile.offset_y <= height / 2 <= tile.offset_y + grid.tile_size

    def test_tiles_cover_canvas(self):
        """Test the union of tiles covers the whole canvas."""
        width, height = 1000, 700
        grid = calculate_tile_grid(width, height, (13.4, 52.5), 11.3)
        assert min(t.offset_x for t in grid.tiles) <= 0
        assert min(t.offset_y for t in grid.tiles) <= 0
        assert max(t.offset_x for t in grid.tiles) + grid.tile_size >= width
        assert max(t.offset_y for t in grid.tiles) + grid.tile_size >= height

    def test_tile_spacing_equals_tile_size(self):
        """Test neighbouring tiles are exactly one tile size apart."""
        grid = calculate_tile_grid(1024, 1024, (0, 0), 3.5)
        by_coord = {(t.x, t.y): t for t in grid.tiles}
        for (x, y), tile in by_coord.items():
            right = by_coord.get((x + 1, y))
            if right is not None:
                assert right.offset_x - tile.offset_x == pytest.approx(grid.tile_size)

    def test_longitude_wraps(self):
        """Test x wraps around the antimeridian while offsets stay unwrapped."""
        grid = calculate_tile_grid(1024, 512, (179.9, 0), 1)
        top_row = [t for t in grid.tiles if t.y == 0]
        assert [t.x for t in top_row] == [0, 1, 0]
        assert top_row[-1].offset_x > 512

    def test_rows_outside_world_dropped(self):
        """Test no tile rows beyond the poles are requested."""
        grid = calculate_tile_grid(2048, 2048, (0, 0), 1)
        assert all(0 <= t.y < 2 for t in grid.tiles)

    def test_at_least_one_tile(self):
        """Test a tiny viewport still gets a tile."""
        grid = calculate_tile_grid(1, 1, (0, 0), 5)
        assert len(grid) >= 1

    def test_grid_is_deterministic(self):
        """Test the same inputs produce the same grid."""
        a = calculate_tile_grid(800, 600, (8.54, 47.37), 12.4)
        b = calculate_tile_grid(800, 600, (8.54, 47.37), 12.4)
        assert a == b


class TestTileUrl:
    """Tests for URL template expansion."""

    def test_xyz(self):
        """Test {z}/{x}/{y} replacement."""
        assert tile_url("https://t/{z}/{x}/{y}.pbf", 3, 4, 5) == "https://t/3/4/5.pbf"

    def test_ratio_and_quadkey(self):
        """Test {ratio} is dropped and {quadkey} expanded."""
        url = tile_url("https://t/{quadkey}{ratio}.png", 3, 3, 5)
        assert url == "https://t/213.png"

    def test_quadkey(self):
        """Test Bing quadkeys."""
        assert quadkey(1, 0, 0) == "0"
        assert quadkey(1, 1, 1) == "3"
        assert quadkey(0, 0, 0) == ""


class TestMapTiles:
    """Tests for the concurrent per-tile runner."""

    def test_results_in_grid_order(self):
        """Test results follow grid order even when tasks finish out of order."""
        tiles = [TileInfo(x=i, y=0, offset_x=0, offset_y=0) for i in range(6)]
        grid = TileGrid(zoom_level=3, tile_size=512, tiles=tiles)

        def task(tile):
            time.sleep(0.01 * (6 - tile.x))
            return tile.x

        assert map_tiles(grid, task, workers=6) == [0, 1, 2, 3, 4, 5]

    def test_runs_concurrently(self):
        """Test tasks run on several threads."""
        tiles = [TileInfo(x=i, y=0, offset_x=0, offset_y=0) for i in range(4)]
        grid = TileGrid(zoom_level=2, tile_size=512, tiles=tiles)
        barrier = threading.Barrier(4, timeout=5)

        def task(tile):
            barrier.wait()
            return threading.get_ident()

        assert len(set(map_tiles(grid, task, workers=4))) == 4

    def test_exceptions_propagate(self):
        """Test a failing task fails the whole run."""
        grid = TileGrid(zoom_level=0, tile_size=512, tiles=[TileInfo(0, 0, 0, 0)])

        def task(tile):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            map_tiles(grid, task)

    def test_empty_grid(self):
        """Test an empty grid yields no results."""
        assert map_tiles(TileGrid(0, 512, []), lambda t: t) == []


class TestFetchTiles:
    """Tests for grid fetching through a byte source."""

    def test_failed_tiles_are_none(self):
        """Test missing tiles come back as None without raising."""
        grid = calculate_tile_grid(256, 256, (0, 0), 0)
        fetcher = FakeFetcher({"t/0/0/0": b"data"})
        results = fetch_tiles(fetcher, "t/{z}/{x}/{y}", grid)
        assert [r.content for _, r in results] == [b"data"]

        results = fetch_tiles(FakeFetcher(), "t/{z}/{x}/{y}", grid)
        assert [r for _, r in results] == [None]


def _response(status=200, content=b"tile", content_type="application/x-protobuf"):
    response = mock.Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.content = content
    response.headers = {"content-type": content_type}
    return response


class TestTileFetcher:
    """Tests for the HTTP byte source."""

    def test_user_agent_header(self):
        """Test the session identifies itself."""
        fetcher = TileFetcher(FetchConfig(user_agent="test-agent/1.0"))
        assert fetcher.session.headers["User-Agent"] == "test-agent/1.0"

    def test_get_fills_template(self):
        """Test get() requests the expanded URL with the configured timeout."""
        fetcher = TileFetcher(FetchConfig(timeout=5))
        with mock.patch.object(fetcher.session, "get", return_value=_response()) as get:
            result = fetcher.get("https://t/{z}/{x}/{y}.pbf", 1, 2, 3)
        get.assert_called_once_with("https://t/1/2/3.pbf", timeout=5)
        assert result.content == b"tile"
        assert result.content_type == "application/x-protobuf"

    def test_http_error_returns_none(self):
        """Test non-2xx responses are treated as missing tiles."""
        fetcher = TileFetcher()
        with mock.patch.object(fetcher.session, "get", return_value=_response(status=404)):
            assert fetcher.get_url("https://t/missing") is None

    def test_network_error_returns_none(self):
        """Test connection failures are treated as missing tiles."""
        fetcher = TileFetcher()
        with mock.patch.object(
            fetcher.session, "get", side_effect=requests.ConnectionError("offline")
        ):
            assert fetcher.get_url("https://t/offline") is None

    def test_cache_hit_skips_network(self, temp_dir):
        """Test a cached response is served without a request."""
        fetcher = TileFetcher(FetchConfig(cache_dir=temp_dir / "cache"))
        with mock.patch.object(
            fetcher.session, "get", return_value=_response(content=b"\x89PNG", content_type="image/png")
        ) as get:
            first = fetcher.get_url("https://t/a.png")
            second = fetcher.get_url("https://t/a.png")

        assert get.call_count == 1
        assert second.content == first.content == b"\x89PNG"
        assert second.content_type == "image/png"

    @pytest.mark.parametrize(
        "entry",
        ['{"content_type": "a", "bo', '{"content_type": "a"}', '{"content_type": "a", "body": "!!"}', "[]"],
    )
    def test_unreadable_cache_entry_is_refetched(self, temp_dir, entry):
        """Test a corrupt cache entry counts as a miss and is replaced."""
        fetcher = TileFetcher(FetchConfig(cache_dir=temp_dir))
        url = "https://t/c.png"
        fetcher._cache_path(url).write_text(entry)

        with mock.patch.object(
            fetcher.session, "get", return_value=_response(content=b"tile", content_type="image/png")
        ) as get:
            result = fetcher.get_url(url)
            again = fetcher.get_url(url)

        assert get.call_count == 1
        assert result.content == again.content == b"tile"
        assert [p.name for p in temp_dir.iterdir()] == [fetcher._cache_path(url).name]


    def test_failures_are_not_cached(self, temp_dir):
        """Test a failed request is retried on the next call."""
        fetcher = TileFetcher(FetchConfig(cache_dir=temp_dir))
        with mock.patch.object(fetcher.session, "get", return_value=_response(status=500)) as get:
            fetcher.get_url("https://t/b")
            fetcher.get_url("https://t/b")
        assert get.call_count == 2

    def test_data_uri(self):
        """Test responses render as base64 data URIs."""
        fetcher = TileFetcher()
        with mock.patch.object(
            fetcher.session, "get", return_value=_response(content=b"abc", content_type="image/png")
        ):
            result = fetcher.get_url("https://t/c.png")
        assert result.data_uri() == "data:image/png;base64,YWJj"
