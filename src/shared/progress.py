import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from shared.errors import CancellationError

logger = logging.getLogger(__name__)

# (fraction in [0, 1], total) -> None
ProgressCallback = Callable[[float, int], None]


class CancelToken:
    """Флаг отмены, который можно выставить из любого потока."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            msg = 'Operation cancelled'
            raise CancellationError(msg)


def check_cancelled(cancel: CancelToken | None) -> None:
    """Бросает CancellationError, если токен задан и отмена запрошена."""
    if cancel is not None:
        cancel.raise_if_cancelled()


def notify(cb: ProgressCallback | None, fraction: float, total: int) -> None:
    """Вызывает колбэк прогресса; ошибки колбэка не прерывают загрузку."""
    if cb is None:
        return
    try:
        cb(fraction, total)
    except Exception as e:
        logger.debug('Progress callback failed: %s', e, exc_info=True)


def monotonic(cb: ProgressCallback | None) -> ProgressCallback | None:
    """
    Пропускает только возрастающие доли.

    Нужна, когда одна логическая операция перезапускает этап (повтор
    загрузки высот на меньшем зуме начинает счёт тайлов заново).
    """
    if cb is None:
        return None
    best = -1.0

    def _cb(fraction: float, total: int) -> None:
        nonlocal best
        if fraction <= best:
            return
        best = fraction
        cb(fraction, total)

    return _cb


@dataclass
class ProgressState:
    """Прогресс одного этапа: (completed, total); completed может быть дробным."""

    completed: float = 0
    total: int = 1

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return min(1.0, max(0.0, self.completed / self.total))


class ProgressAggregator:
    """
    Сводит прогресс нескольких этапов в одну долю [0, 1].

    Каждому этапу назначается вес; итоговая доля никогда не уменьшается,
    даже если этап начинается заново (повторная попытка на меньшем зуме).
    """

    def __init__(
        self,
        weights: dict[str, float],
        on_change: Callable[[float], None] | None = None,
    ) -> None:
        total_weight = sum(weights.values())
        if total_weight <= 0:
            msg = 'Stage weights must sum to a positive value'
            raise ValueError(msg)
        self._weights = {k: v / total_weight for k, v in weights.items()}
        self._states = {k: ProgressState() for k in weights}
        self._on_change = on_change
        self._reported = 0.0
        self._lock = threading.Lock()

    def stage(self, name: str) -> ProgressCallback:
        """Колбэк в формате (fraction, total) для конкретного этапа."""
        if name not in self._states:
            msg = f'Unknown progress stage: {name}'
            raise KeyError(msg)

        def _cb(fraction: float, total: int) -> None:
            total = max(1, int(total))
            # Доля сохраняется как есть: этап сетки шлёт вехи 0.1..0.6 с total=1
            completed = max(0.0, min(1.0, fraction)) * total
            self.update(name, completed, total)

        return _cb

    def update(self, name: str, completed: float, total: int) -> None:
        with self._lock:
            self._states[name] = ProgressState(completed, total)
            value = sum(
                self._weights[k] * s.fraction for k, s in self._states.items()
            )
            if value <= self._reported:
                return
            self._reported = value
        if self._on_change is not None:
            self._on_change(value)

    @property
    def fraction(self) -> float:
        return self._reported
