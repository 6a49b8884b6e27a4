from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sqlite3
import ssl
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlsplit

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from shared.constants import (
    APP_DIR_NAME,
    HTTP_ACCEPT_MAX,
    HTTP_ACCEPT_MIN,
    HTTP_CACHE_DIR,
    HTTP_CACHE_ENABLED,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_RESPECT_HEADERS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
    HTTP_TIMEOUT_DEFAULT,
)
from shared.errors import HttpStatusError, TransportError, UrlConstructionError

logger = logging.getLogger(__name__)


def resolve_cache_dir() -> Path:
    raw_dir = Path(HTTP_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir

    cache_home = os.getenv('XDG_CACHE_HOME')
    if cache_home:
        return (Path(cache_home) / APP_DIR_NAME / 'tiles').resolve()
    # Fallback: user's home directory
    return (Path.home() / f'.{APP_DIR_NAME}_cache' / 'tiles').resolve()


def make_http_session(
    cache_dir: Path | None,
    *,
    use_cache: bool = HTTP_CACHE_ENABLED,
) -> aiohttp.ClientSession:
    # SSL-контекст с сертификатами из certifi
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    if use_cache and cache_dir is not None:
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_path = cache_dir / 'http_cache.sqlite'
        if not cache_path.exists():
            with contextlib.closing(sqlite3.connect(cache_path)) as conn:
                conn.execute('PRAGMA journal_mode=WAL;')
        expire_td = timedelta(hours=max(0, int(HTTP_CACHE_EXPIRE_HOURS)))
        stale_hours = int(HTTP_CACHE_STALE_IF_ERROR_HOURS)
        stale_param: bool | timedelta
        stale_param = timedelta(hours=stale_hours) if stale_hours > 0 else False
        backend = SQLiteBackend(str(cache_path), expire_after=expire_td)
        return CachedSession(
            cache=backend,
            connector=connector,
            expire_after=expire_td,
            cache_control=bool(HTTP_CACHE_RESPECT_HEADERS),
            stale_if_error=stale_param,
        )
    return aiohttp.ClientSession(connector=connector)


def strip_query(url: str) -> str:
    """URL без query-строки: токен доступа не должен попадать в логи."""
    parts = urlsplit(url)
    return f'{parts.scheme}://{parts.netloc}{parts.path}'


class HttpApiClient:
    """
    Тонкая обёртка над aiohttp: один запрос — одни байты ответа.

    Повторных попыток нет; коды вне [200, 304] превращаются в HttpStatusError,
    сетевые сбои — в TransportError.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
    ) -> None:
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def request(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        method: str = 'GET',
    ) -> bytes:
        parts = urlsplit(url)
        if parts.scheme not in ('http', 'https') or not parts.netloc:
            msg = f'Cannot build request for URL {strip_query(url)!r}'
            raise UrlConstructionError(msg)

        path = strip_query(url)
        try:
            async with self._session.request(
                method,
                url,
                headers=headers or {},
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                if not (HTTP_ACCEPT_MIN <= status <= HTTP_ACCEPT_MAX):
                    logger.warning('Non-OK response from server: %s %s', status, path)
                    raise HttpStatusError(status, path)
                return await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning('No HTTP response for %s: %s', path, e)
            msg = f'No response from server for {path}: {e}'
            raise TransportError(msg) from e
