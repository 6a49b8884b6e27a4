"""Tests for tiles.fetcher module."""

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from shared.constants import STYLE_ACCEPT_HEADER, TileImageFormat
from shared.errors import DecodeError, TransportError, UrlConstructionError
from tiles.fetcher import TileFetcher, decode_image

HOST = 'https://tiles.example.test'


def png_bytes(size=(256, 256), mode='RGB', color=(10, 20, 30)):
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, format='PNG')
    return buf.getvalue()


def make_fetcher(token='tok', payload=None):
    client = MagicMock()
    client.request = AsyncMock(return_value=payload or png_bytes())
    return TileFetcher(client, token, host=HOST), client


class TestDecodeImage:
    """Tests for decode_image."""

    def test_valid_png(self):
        img = decode_image(png_bytes((8, 4)))
        assert img.size == (8, 4)
        assert img.mode == 'RGB'

    def test_grayscale_converted_to_rgb(self):
        img = decode_image(png_bytes((2, 2), mode='L', color=7))
        assert img.mode == 'RGB'
        assert img.getpixel((0, 0)) == (7, 7, 7)

    def test_empty_body(self):
        with pytest.raises(DecodeError):
            decode_image(b'')

    def test_garbage_body(self):
        with pytest.raises(DecodeError):
            decode_image(b'<html>rate limited</html>')


class TestUrls:
    """URL construction for tileset and style requests."""

    def test_tileset_url(self):
        fetcher, _ = make_fetcher()
        url = fetcher.tileset_url('mapbox.terrain-rgb', 12, 654, 1582, 'pngraw')
        assert url == f'{HOST}/v4/mapbox.terrain-rgb/12/654/1582.pngraw?access_token=tok'

    def test_tileset_url_retina(self):
        fetcher, _ = make_fetcher()
        url = fetcher.tileset_url(
            'mapbox.satellite', 3, 1, 2, TileImageFormat.JPG90, retina=True
        )
        assert url == f'{HOST}/v4/mapbox.satellite/3/1/2@2x.jpg90?access_token=tok'

    def test_unknown_format(self):
        fetcher, _ = make_fetcher()
        with pytest.raises(UrlConstructionError):
            fetcher.tileset_url('mapbox.terrain-rgb', 1, 0, 0, 'tiff')

    def test_empty_token(self):
        fetcher, _ = make_fetcher(token='')
        with pytest.raises(UrlConstructionError):
            fetcher.tileset_url('mapbox.terrain-rgb', 1, 0, 0, 'pngraw')

    def test_token_is_quoted(self):
        fetcher, _ = make_fetcher(token='a b&c')
        url = fetcher.tileset_url('mapbox.terrain-rgb', 1, 0, 0, 'png')
        assert url.endswith('?access_token=a%20b%26c')

    def test_style_url(self):
        fetcher, _ = make_fetcher()
        url = fetcher.style_url('mapbox/satellite-v9', 12, 37.75, -122.4, 512, 512)
        assert url == (
            f'{HOST}/styles/v1/mapbox/satellite-v9/static/-122.4,37.75,12/512x512'
            '?access_token=tok&attribution=false&logo=false'
        )

    def test_empty_style(self):
        fetcher, _ = make_fetcher()
        with pytest.raises(UrlConstructionError):
            fetcher.style_url('', 1, 0.0, 0.0, 512, 512)


class TestFetch:
    """Single tile fetches through the HTTP client."""

    @pytest.mark.asyncio
    async def test_fetch_tileset_tile(self):
        fetcher, client = make_fetcher()
        img = await fetcher.fetch_tileset_tile('mapbox.terrain-rgb', 12, 654, 1582)
        assert img.size == (256, 256)
        client.request.assert_awaited_once_with(
            f'{HOST}/v4/mapbox.terrain-rgb/12/654/1582.pngraw?access_token=tok'
        )

    @pytest.mark.asyncio
    async def test_fetch_style_image_sends_accept_header(self):
        fetcher, client = make_fetcher(payload=png_bytes((512, 512)))
        img = await fetcher.fetch_style_image(
            'mapbox/satellite-v9', 12, 37.75, -122.4, 512, 512
        )
        assert img.size == (512, 512)
        _, kwargs = client.request.call_args
        assert kwargs['headers'] == {'Accept': STYLE_ACCEPT_HEADER}

    @pytest.mark.asyncio
    async def test_fetch_style_tile_centred_on_tile(self):
        fetcher, client = make_fetcher(payload=png_bytes((512, 512)))
        await fetcher.fetch_style_tile('mapbox/streets-v12', 1, 0, 0, 512)
        (url,), _ = client.request.call_args
        # Центр тайла (0, 0) на зуме 1 — северо-западная четверть мира
        assert '/static/-90.0,' in url
        assert url.split('/static/')[1].split('/')[1].startswith('512x512')

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        fetcher, client = make_fetcher()
        client.request.side_effect = TransportError('offline')
        with pytest.raises(TransportError):
            await fetcher.fetch_tileset_tile('mapbox.terrain-rgb', 1, 0, 0)

    @pytest.mark.asyncio
    async def test_decode_error_on_bad_payload(self):
        fetcher, _ = make_fetcher(payload=b'not an image')
        with pytest.raises(DecodeError):
            await fetcher.fetch_tileset_tile('mapbox.terrain-rgb', 1, 0, 0)
