"""Tests for shared.progress module."""

import asyncio

import pytest

from shared.errors import CancellationError
from shared.progress import (
    CancelToken,
    ProgressAggregator,
    ProgressState,
    check_cancelled,
    monotonic,
    notify,
)


class TestCancelToken:
    """Tests for CancelToken."""

    def test_initial_state(self):
        token = CancelToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancelToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(CancellationError):
            token.raise_if_cancelled()

    def test_check_cancelled_none(self):
        check_cancelled(None)

    def test_cancellation_is_not_an_exception(self):
        """Generic ``except Exception`` handlers must not catch cancellation."""
        assert issubclass(CancellationError, asyncio.CancelledError)
        assert not issubclass(CancellationError, Exception)


class TestNotify:
    def test_calls_callback(self):
        calls = []
        notify(lambda f, t: calls.append((f, t)), 0.5, 4)
        assert calls == [(0.5, 4)]

    def test_none_callback(self):
        notify(None, 0.5, 4)

    def test_callback_error_suppressed(self):
        def broken(fraction, total):
            raise RuntimeError('closed')

        notify(broken, 1.0, 1)


class TestProgressState:
    def test_fraction(self):
        assert ProgressState(1, 4).fraction == 0.25
        assert ProgressState(5, 4).fraction == 1.0
        assert ProgressState(0, 0).fraction == 1.0


class TestProgressAggregator:
    """Tests for ProgressAggregator."""

    def test_weighted_fraction(self):
        agg = ProgressAggregator({'height': 1.0, 'texture': 3.0})
        agg.stage('height')(1.0, 8)
        assert agg.fraction == pytest.approx(0.25)
        agg.stage('texture')(0.5, 10)
        assert agg.fraction == pytest.approx(0.625)

    def test_never_decreases(self):
        """A restarted stage (retry at lower zoom) does not move progress back."""
        reported = []
        agg = ProgressAggregator({'height': 1.0}, on_change=reported.append)
        cb = agg.stage('height')
        cb(0.5, 4)
        cb(0.25, 4)
        cb(0.75, 4)
        assert reported == [0.5, 0.75]
        assert agg.fraction == 0.75

    def test_unknown_stage(self):
        agg = ProgressAggregator({'height': 1.0})
        with pytest.raises(KeyError):
            agg.stage('mesh')

    def test_zero_weights(self):
        with pytest.raises(ValueError):
            ProgressAggregator({'height': 0.0})

    def test_fractional_milestones_kept(self):
        """Mesh milestones arrive with total=1 and must not be rounded."""
        reported = []
        agg = ProgressAggregator(
            {'height': 0.4, 'mesh': 0.2, 'texture': 0.4}, on_change=reported.append
        )
        cb = agg.stage('mesh')
        cb(0.1, 1)
        assert agg.fraction == pytest.approx(0.02)
        cb(0.6, 1)
        assert agg.fraction == pytest.approx(0.12)
        cb(1.0, 1)
        assert reported == pytest.approx([0.02, 0.12, 0.2])


class TestMonotonic:
    def test_drops_values_not_above_best(self):
        calls = []
        cb = monotonic(lambda fraction, total: calls.append((fraction, total)))
        for fraction, total in [(0.25, 4), (0.5, 4), (1 / 3, 3), (0.5, 3), (1.0, 3)]:
            cb(fraction, total)
        assert calls == [(0.25, 4), (0.5, 4), (1.0, 3)]

    def test_none_passthrough(self):
        assert monotonic(None) is None
