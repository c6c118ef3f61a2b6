"""Tests for stop/target math and the conflict tracker."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from candlesignal.risk.conflict_tracker import ConflictTracker
from candlesignal.risk.sl_tp import (
    RiskLevels,
    calculate_risk_levels,
    calculate_stop_loss,
    calculate_target,
    reward_multiple,
)
from candlesignal.strategy.models import Candle, Direction

_T0 = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


def _make_candle(o: float, h: float, l: float, c: float) -> Candle:
    return Candle(timestamp=_T0, open=o, high=h, low=l, close=c)


# ── Stop loss / target ───────────────────────────────────────────────────


class TestStopLoss:
    def test_long_below_support(self):
        candle = _make_candle(100, 105, 95, 104)
        assert calculate_stop_loss(Direction.LONG, candle, support=96) == pytest.approx(95.04)

    def test_short_above_resistance(self):
        candle = _make_candle(100, 105, 95, 96)
        assert calculate_stop_loss(Direction.SHORT, candle, resistance=106) == pytest.approx(107.06)

    def test_missing_level_uses_candle(self):
        candle = _make_candle(100, 105, 95, 104)
        assert calculate_stop_loss(Direction.LONG, candle) == pytest.approx(94.05)
        assert calculate_stop_loss(Direction.SHORT, candle) == pytest.approx(106.05)

    def test_non_positive_level_uses_candle(self):
        candle = _make_candle(100, 105, 95, 104)
        assert calculate_stop_loss(Direction.LONG, candle, support=0) == pytest.approx(94.05)


class TestTarget:
    def test_reward_multiple(self):
        assert reward_multiple(85, True) == 4.0
        assert reward_multiple(85, False) == 3.0
        assert reward_multiple(84.9, True) == 3.0

    def test_long_target(self):
        assert calculate_target(Direction.LONG, 100, 98, 3.0) == pytest.approx(106)

    def test_short_target(self):
        assert calculate_target(Direction.SHORT, 100, 102, 4.0) == pytest.approx(92)

    def test_risk_levels(self):
        candle = _make_candle(100, 105, 95, 104)
        levels = calculate_risk_levels(Direction.LONG, 101.0, candle, 80, False, support=96)
        assert levels.stop_loss == pytest.approx(95.04)
        assert levels.risk_amount == pytest.approx(5.96)
        assert levels.reward_amount == pytest.approx(17.88)
        assert levels.risk_reward_ratio == 3.0

    def test_zero_risk_ratio(self):
        assert RiskLevels(100, 100, 0, 0).risk_reward_ratio == 0.0


# ── Conflict tracker ─────────────────────────────────────────────────────


class TestConflictTracker:
    def test_first_signal_never_conflicts(self):
        tracker = ConflictTracker()
        assert not tracker.check_and_record("AAPL", _T0, Direction.LONG)
        assert tracker.last_signal("AAPL") == (_T0, Direction.LONG)

    def test_opposite_within_window_conflicts(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        assert tracker.check_and_record("AAPL", _T0 + timedelta(minutes=10), Direction.SHORT)
        # conflicting signal is not recorded
        assert tracker.last_signal("AAPL") == (_T0, Direction.LONG)

    def test_opposite_outside_window_replaces(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        later = _T0 + timedelta(minutes=30)
        assert not tracker.check_and_record("AAPL", later, Direction.SHORT)
        assert tracker.last_signal("AAPL") == (later, Direction.SHORT)

    def test_same_direction_replaces(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        later = _T0 + timedelta(minutes=5)
        assert not tracker.check_and_record("AAPL", later, Direction.LONG)
        assert tracker.last_signal("AAPL") == (later, Direction.LONG)

    def test_symbols_are_independent(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        assert not tracker.check_and_record("MSFT", _T0, Direction.SHORT)
        assert tracker.tracked_symbols == ["AAPL", "MSFT"]

    def test_earlier_timestamp_uses_absolute_gap(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        assert tracker.check_and_record("AAPL", _T0 - timedelta(minutes=5), Direction.SHORT)

    def test_reset(self):
        tracker = ConflictTracker()
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        tracker.reset()
        assert tracker.last_signal("AAPL") is None
        assert not tracker.check_and_record("AAPL", _T0, Direction.SHORT)

    def test_reset_drops_symbol_locks(self):
        tracker = ConflictTracker()
        for symbol in ("AAPL", "MSFT"):
            tracker.check_and_record(symbol, _T0, Direction.LONG)
        assert len(tracker._locks) == 2
        tracker.reset()
        assert tracker._locks == {}
        assert not tracker.check_and_record("AAPL", _T0, Direction.SHORT)
        assert len(tracker._locks) == 1

    def test_custom_window(self):
        tracker = ConflictTracker(window_minutes=5)
        tracker.check_and_record("AAPL", _T0, Direction.LONG)
        assert not tracker.check_and_record("AAPL", _T0 + timedelta(minutes=10), Direction.SHORT)

    def test_invalid_window(self):
        with pytest.raises(ValueError, match="window_minutes"):
            ConflictTracker(window_minutes=0)

    def test_concurrent_symbols(self):
        tracker = ConflictTracker()
        symbols = [f"SYM{i}" for i in range(8)]

        def _record(symbol: str) -> None:
            for k in range(50):
                tracker.check_and_record(symbol, _T0 + timedelta(hours=k), Direction.LONG)

        threads = [threading.Thread(target=_record, args=(s,)) for s in symbols]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert tracker.tracked_symbols == sorted(symbols)
        for s in symbols:
            assert tracker.last_signal(s) == (_T0 + timedelta(hours=49), Direction.LONG)
