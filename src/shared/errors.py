"""Error types shared by the fetch, stitch and terrain layers."""

from __future__ import annotations

import asyncio


class TerrainKitError(Exception):
    """Base class for all non-cancellation failures."""


class FetchError(TerrainKitError):
    """A single tile could not be fetched or decoded."""


class UrlConstructionError(FetchError):
    """Request URL could not be built from the template."""


class TransportError(FetchError):
    """No HTTP response was received (offline, DNS, timeout, reset)."""


class HttpStatusError(FetchError):
    """Server answered with a status outside the accepted range."""

    def __init__(self, status: int, path: str = '') -> None:
        self.status = int(status)
        self.path = path
        msg = f'Unacceptable HTTP status {self.status}'
        if path:
            msg = f'{msg} for {path}'
        super().__init__(msg)


class DecodeError(FetchError):
    """Bytes are not a valid image or the pixel buffer is unreadable."""


class UnknownError(TerrainKitError):
    """Operation failed without a recorded cause."""


class CancellationError(asyncio.CancelledError):
    """
    Operation was cancelled by the caller.

    Derives from ``asyncio.CancelledError`` so ``except Exception`` handlers
    (retry loops, error reporting) never treat it as an ordinary failure.
    """
