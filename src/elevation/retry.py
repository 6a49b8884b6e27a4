"""
Bounded retries for the terrain height fetch, one zoom level lower each time.

Coarser tiles are more likely to exist for sparsely covered regions, so a
failed attempt at zoom ``z`` is retried at ``z - 1``. Cancellation is never
retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from shared.constants import MAX_REQUEST_ATTEMPTS
from shared.errors import UnknownError
from shared.progress import CancelToken, check_cancelled

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class ZoomDegradation:
    """Состояние повторов: номер попытки, текущий зум, последняя ошибка."""

    start_zoom: int
    max_attempts: int = MAX_REQUEST_ATTEMPTS
    attempt: int = 0
    last_error: Exception | None = None
    zoom: int = field(init=False)

    def __post_init__(self) -> None:
        self.zoom = int(self.start_zoom)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts or self.zoom < 0

    def record_failure(self, error: Exception) -> None:
        """Фиксирует неудачу и переходит на зум ниже."""
        self.last_error = error
        self.attempt += 1
        self.zoom -= 1

    def final_error(self) -> Exception:
        if self.last_error is not None:
            return self.last_error
        return UnknownError('Height fetch failed without a recorded error')

    def zoom_sequence(self) -> list[int]:
        """Зумы, которые будут перебраны с текущего состояния."""
        remaining = max(0, self.max_attempts - self.attempt)
        return [z for z in range(self.zoom, self.zoom - remaining, -1) if z >= 0]


async def fetch_height_with_retry(
    fetch: Callable[[int], Awaitable[T]],
    start_zoom: int,
    max_attempts: int = MAX_REQUEST_ATTEMPTS,
    *,
    cancel: CancelToken | None = None,
) -> T:
    """
    Вызывает ``fetch(zoom)`` на зумах start_zoom, start_zoom-1, ...

    Возвращает первый успешный результат. CancelledError (в том числе
    CancellationError) пробрасывается сразу и попытку не расходует. После
    исчерпания попыток бросается последняя ошибка или UnknownError.
    """
    state = ZoomDegradation(start_zoom=start_zoom, max_attempts=max_attempts)
    while not state.exhausted:
        check_cancelled(cancel)
        try:
            return await fetch(state.zoom)
        except Exception as e:
            check_cancelled(cancel)
            logger.warning(
                'Height fetch attempt %d/%d at zoom %d failed: %s',
                state.attempt + 1,
                state.max_attempts,
                state.zoom,
                e,
            )
            state.record_failure(e)
    raise state.final_error()
