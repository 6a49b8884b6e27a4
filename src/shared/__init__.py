"""Shared utilities and helpers."""
from shared.diagnostics import log_memory_usage
from shared.progress import (
    CancelToken,
    ProgressAggregator,
    ProgressCallback,
    ProgressState,
)

__all__ = [
    'CancelToken',
    'ProgressAggregator',
    'ProgressCallback',
    'ProgressState',
    'log_memory_usage',
]
