"""
Single-tile requests against the Mapbox Tilesets and Static Images APIs.

No retries here: the terrain height path retries at a lower zoom
(see ``elevation.retry``); texture fetches fail fast.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import TYPE_CHECKING
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from geo.tile_math import tile_center
from shared.constants import (
    MAPBOX_API_HOST,
    STYLE_ACCEPT_HEADER,
    TileImageFormat,
)
from shared.errors import DecodeError, UrlConstructionError

if TYPE_CHECKING:
    from infrastructure.http.client import HttpApiClient

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> Image.Image:
    """Декодирует байты ответа в PIL.Image (RGB)."""
    if not data:
        msg = 'Empty response body, expected image bytes'
        raise DecodeError(msg)
    try:
        img = Image.open(BytesIO(data))
        img.load()
        # Контент может быть png/jpg/webp — PIL откроет всё; конвертируем в RGB
        return img.convert('RGB')
    except (UnidentifiedImageError, OSError, ValueError) as e:
        msg = f'Response is not a valid image: {e}'
        raise DecodeError(msg) from e


class TileFetcher:
    """Строит URL тайлов и загружает их через HttpApiClient."""

    def __init__(
        self,
        client: HttpApiClient,
        access_token: str,
        *,
        host: str = MAPBOX_API_HOST,
    ) -> None:
        self.client = client
        self.access_token = access_token
        self.host = host.rstrip('/')

    def _token_query(self) -> str:
        if not self.access_token:
            msg = 'Access token is empty'
            raise UrlConstructionError(msg)
        return f'access_token={quote(self.access_token, safe="")}'

    def tileset_url(
        self,
        tileset: str,
        z: int,
        x: int,
        y: int,
        fmt: str | TileImageFormat,
        *,
        retina: bool = False,
    ) -> str:
        try:
            fmt_value = TileImageFormat(fmt).value
        except ValueError:
            msg = f'Unsupported tile format: {fmt!r}'
            raise UrlConstructionError(msg) from None
        if not tileset:
            msg = 'Tileset id is empty'
            raise UrlConstructionError(msg)
        scale_suffix = '@2x' if retina else ''
        return (
            f'{self.host}/v4/{quote(tileset)}/{z}/{x}/{y}{scale_suffix}.{fmt_value}'
            f'?{self._token_query()}'
        )

    def style_url(
        self,
        style: str,
        z: int,
        center_lat: float,
        center_lon: float,
        width: int,
        height: int,
    ) -> str:
        if not style:
            msg = 'Style id is empty'
            raise UrlConstructionError(msg)
        return (
            f'{self.host}/styles/v1/{quote(style)}/static/'
            f'{center_lon},{center_lat},{z}/{int(width)}x{int(height)}'
            f'?{self._token_query()}&attribution=false&logo=false'
        )

    async def fetch_tileset_tile(
        self,
        tileset: str,
        z: int,
        x: int,
        y: int,
        fmt: str | TileImageFormat = TileImageFormat.PNG_RAW,
        *,
        retina: bool = False,
    ) -> Image.Image:
        """Загружает один тайл тайлсета (terrain-rgb и др.)."""
        url = self.tileset_url(tileset, z, x, y, fmt, retina=retina)
        data = await self.client.request(url)
        return decode_image(data)

    async def fetch_style_image(
        self,
        style: str,
        z: int,
        center_lat: float,
        center_lon: float,
        width: int,
        height: int,
    ) -> Image.Image:
        """Загружает статичную картинку стиля с центром в (lat, lon)."""
        url = self.style_url(style, z, center_lat, center_lon, width, height)
        data = await self.client.request(url, headers={'Accept': STYLE_ACCEPT_HEADER})
        return decode_image(data)

    async def fetch_style_tile(
        self,
        style: str,
        z: int,
        x: int,
        y: int,
        tile_px: int,
    ) -> Image.Image:
        """Картинка стиля, отцентрированная по тайлу (x, y)."""
        center_lat, center_lon = tile_center(x, y, z)
        return await self.fetch_style_image(
            style, z, center_lat, center_lon, tile_px, tile_px
        )
