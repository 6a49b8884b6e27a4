from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from shared.constants import ASYNC_MAX_CONCURRENCY, LOG_MEMORY_EVERY_TILES
from shared.diagnostics import log_memory_usage
from shared.errors import CancellationError
from shared.progress import CancelToken, ProgressCallback, check_cancelled, notify

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from PIL import Image

logger = logging.getLogger(__name__)

TileResult = tuple[int, int, 'Image.Image']


async def run_tiles(
    jobs: Sequence[tuple[int, int, int, int]],
    *,
    fetch: Callable[[int, int], Awaitable[Image.Image]],
    on_tile: Callable[[int, int, Image.Image], None],
    concurrency: int = ASYNC_MAX_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    label: str = 'tiles',
) -> int:
    """
    Fetch every (col, row, x, y) job and hand each image to ``on_tile``.

    Tasks are launched in job order. Before launching job ``index`` with
    ``index > concurrency`` one completion is awaited and delivered, so at
    most ``concurrency + 1`` fetches are in flight. Completions are
    delivered one at a time on the event loop, each with its own (col, row).

    ``on_progress(completed / total, total)`` fires once per delivered tile.
    The first failing fetch cancels the rest and its error is re-raised;
    cancellation (token or task) cancels all in-flight fetches and raises
    a ``CancelledError`` subclass.

    Returns the number of delivered tiles.
    """
    total = len(jobs)
    if total == 0:
        return 0

    pending: set[asyncio.Task[TileResult]] = set()
    completed = 0

    async def _fetch_one(col: int, row: int, x: int, y: int) -> TileResult:
        img = await fetch(x, y)
        return col, row, img

    async def _deliver_one() -> None:
        nonlocal completed
        done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        task = next(iter(done))
        pending.discard(task)
        col, row, img = task.result()
        check_cancelled(cancel)
        completed += 1
        on_tile(col, row, img)
        notify(on_progress, completed / total, total)
        logger.debug('%s progress: %d / %d', label, completed, total)
        if completed % LOG_MEMORY_EVERY_TILES == 0:
            log_memory_usage(f'after {completed} {label}')

    try:
        for index, (col, row, x, y) in enumerate(jobs):
            check_cancelled(cancel)
            if index > concurrency:
                await _deliver_one()
            pending.add(asyncio.create_task(_fetch_one(col, row, x, y)))

        while pending:
            await _deliver_one()
    except BaseException as e:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if isinstance(e, asyncio.CancelledError) and not isinstance(
            e, CancellationError
        ):
            msg = f'{label} fetch cancelled'
            raise CancellationError(msg) from e
        raise

    return completed
