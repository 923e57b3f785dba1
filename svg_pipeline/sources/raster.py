"""
Raster tile collection for raster layers.
"""

from loguru import logger

from ..errors import ValidationError
from ..svg_renderer import RasterTile
from ..tiles import calculate_tile_grid, fetch_tiles


def get_raster_tiles(job, source_name: str) -> list[RasterTile]:
    """Fetch the raster tiles of a source covering the view.

    Tiles are laid out on the 512px reference grid regardless of the
    source's declared tileSize. Tiles that fail to load are left out.

    Args:
        job: RenderJob
        source_name: Style source id

    Returns:
        RasterTile per loaded tile, in grid order

    Raises:
        ValidationError: If the source is missing, not a raster source or
            has no tile URLs
    """
    source = job.style.get("sources", {}).get(source_name)
    if not source or source.get("type") != "raster" or not source.get("tiles"):
        raise ValidationError(f"Invalid raster source: {source_name}")

    grid = calculate_tile_grid(
        job.width, job.height, job.view.center, job.view.zoom, source.get("maxzoom")
    )

    tiles = []
    for tile, response in fetch_tiles(job.fetcher, source["tiles"][0], grid, job.workers):
        if response is None:
            continue
        tiles.append(
            RasterTile(
                x=tile.offset_x,
                y=tile.offset_y,
                width=grid.tile_size,
                height=grid.tile_size,
                data_uri=response.data_uri(),
            )
        )

    logger.debug(f"Raster source {source_name}: {len(tiles)}/{len(grid)} tiles at z{grid.zoom_level}")
    return tiles
