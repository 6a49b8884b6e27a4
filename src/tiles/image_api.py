"""
Stitched images for a bounding box from the Tilesets and Static Images APIs.

Both paths share the same pipeline: covering tile range -> bounded
concurrent fetch -> ImageBuilder -> crop to the exact bounding box.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from geo.tile_math import covering_tiles
from imaging.composer import ImageBuilder
from shared.constants import (
    ASYNC_MAX_CONCURRENCY,
    STYLE_SCALE,
    TILE_SIZE,
    TileImageFormat,
)
from shared.errors import DecodeError
from tiles.executor import run_tiles

if TYPE_CHECKING:
    from PIL import Image

    from domain.models import GeoBoundingBox
    from shared.progress import CancelToken, ProgressCallback
    from tiles.fetcher import TileFetcher

logger = logging.getLogger(__name__)


def _ensure_tile_size(img: Image.Image, expected: int, x: int, y: int) -> Image.Image:
    if img.size != (expected, expected):
        msg = f'Tile {x}/{y} decoded to {img.size}, expected {expected}x{expected}'
        raise DecodeError(msg)
    return img


class MapboxImageApi:
    """Загрузка и склейка изображений тайлсетов и стилей Mapbox."""

    def __init__(
        self,
        fetcher: TileFetcher,
        *,
        tile_size: int = TILE_SIZE,
        concurrency: int = ASYNC_MAX_CONCURRENCY,
    ) -> None:
        self.fetcher = fetcher
        self.tile_size = int(tile_size)
        self.concurrency = int(concurrency)

    async def image_for_tileset(
        self,
        tileset: str,
        zoom: int,
        bbox: GeoBoundingBox,
        fmt: str | TileImageFormat = TileImageFormat.PNG_RAW,
        *,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Image.Image:
        """Склеенное изображение тайлсета (например, terrain-rgb) по области."""
        bounding = covering_tiles(bbox, zoom, self.tile_size)
        builder = ImageBuilder(
            len(bounding.xs), len(bounding.ys), self.tile_size, bounding.insets
        )
        retina = self.tile_size > TILE_SIZE
        logger.info(
            'Tileset %s z=%d: %dx%d tiles, output %dx%d px',
            tileset,
            zoom,
            len(bounding.xs),
            len(bounding.ys),
            *builder.size,
        )

        async def _fetch(x: int, y: int) -> Image.Image:
            img = await self.fetcher.fetch_tileset_tile(
                tileset, zoom, x, y, fmt, retina=retina
            )
            return _ensure_tile_size(img, self.tile_size, x, y)

        await run_tiles(
            bounding.jobs(),
            fetch=_fetch,
            on_tile=builder.add_tile,
            concurrency=self.concurrency,
            on_progress=progress,
            cancel=cancel,
            label=f'{tileset} tiles',
        )
        return builder.make_image()

    async def image_for_style(
        self,
        style: str,
        zoom: int,
        bbox: GeoBoundingBox,
        *,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Image.Image:
        """
        Склеенное изображение стиля по области.

        Static Images API отдаёт картинку вдвое больше 256-пиксельного тайла,
        поэтому сетка считается для 256, а склейка и обрезка — для 512.
        """
        returned_px = TILE_SIZE * STYLE_SCALE
        bounding = covering_tiles(bbox, zoom, TILE_SIZE)
        builder = ImageBuilder(
            len(bounding.xs),
            len(bounding.ys),
            returned_px,
            bounding.insets.scaled(STYLE_SCALE),
        )
        logger.info(
            'Style %s z=%d: %dx%d tiles, output %dx%d px',
            style,
            zoom,
            len(bounding.xs),
            len(bounding.ys),
            *builder.size,
        )

        async def _fetch(x: int, y: int) -> Image.Image:
            img = await self.fetcher.fetch_style_tile(style, zoom, x, y, returned_px)
            return _ensure_tile_size(img, returned_px, x, y)

        await run_tiles(
            bounding.jobs(),
            fetch=_fetch,
            on_tile=builder.add_tile,
            concurrency=self.concurrency,
            on_progress=progress,
            cancel=cancel,
            label=f'{style} tiles',
        )
        return builder.make_image()
