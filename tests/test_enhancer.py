"""Tests for trend/context enhancement and conflict penalties."""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from candlesignal.risk.conflict_tracker import ConflictTracker
from candlesignal.strategy.candlestick_patterns import detect_bullish_engulfing
from candlesignal.strategy.enhancer import (
    SignalEnhancer,
    _move_adjustment,
    _risk_multiplier,
    _rr_multiplier,
)
from candlesignal.strategy.models import Candle, Direction, PatternKind, PatternMatch
from candlesignal.strategy.signals import evaluate_pattern

_TS = datetime(2024, 3, 15, 15, 0, tzinfo=timezone.utc)


def _make_candle(i: int, close: float, spread: float = 0.5) -> Candle:
    return Candle(
        timestamp=_TS - timedelta(minutes=40 - i),
        open=close, high=close + spread, low=close - spread, close=close,
        volume=1000,
    )


def _history(start: float, step: float, n: int = 40) -> list[Candle]:
    return [_make_candle(i, start + step * i) for i in range(n)]


def _engulfing() -> PatternMatch:
    prev = Candle(_TS, 100, 101, 94, 95, volume=1000)
    curr = Candle(_TS, 94, 107, 93, 106, volume=1000)
    return detect_bullish_engulfing(prev, curr, "TEST", 1000)


def _bearish(pattern: PatternMatch, minutes_later: int) -> PatternMatch:
    return dataclasses.replace(
        pattern,
        kind=PatternKind.BEARISH_ENGULFING,
        timestamp=pattern.timestamp + timedelta(minutes=minutes_later),
        support_level=None,
        resistance_level=108,
    )


class TestTrendAdjustment:
    def test_short_history_is_neutral_and_choppy(self):
        pattern = _engulfing()
        base = evaluate_pattern(pattern)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.5, n=8), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6)
        assert enhanced.confidence == base.confidence
        assert enhanced.reason == (
            "BULLISH ENGULFING at $106.00 (80% conf) (neutral trend) ⚠️ CHOPPY (ADX: 0.0)"
        )

    def test_with_trend_boost(self):
        pattern = _engulfing()
        base = evaluate_pattern(pattern)
        enhanced = SignalEnhancer().enhance(pattern, _history(90, 0.5), base)
        assert enhanced.confidence == 90
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 1.2 * 1.15)
        assert "✅ WITH TREND" in enhanced.reason
        assert "✅ STRONG TREND (ADX: 95.0)" in enhanced.reason
        assert enhanced.reason.startswith("BULLISH ENGULFING at $106.00 (90% conf)")

    def test_counter_trend_penalty(self):
        pattern = _engulfing()
        base = evaluate_pattern(pattern)
        enhanced = SignalEnhancer().enhance(pattern, _history(130, -0.5), base)
        assert enhanced.signal_quality == pytest.approx(
            base.signal_quality * 0.4 * 1.15 * 1.02
        )
        assert "COUNTER-TREND (in downtrend)" in enhanced.reason
        assert enhanced.confidence == base.confidence

    def test_keeps_price_levels_and_volume(self):
        pattern = _engulfing()
        base = evaluate_pattern(pattern)
        enhanced = SignalEnhancer().enhance(pattern, _history(90, 0.5), base)
        assert enhanced.entry_price == base.entry_price
        assert enhanced.stop_loss == base.stop_loss
        assert enhanced.target == base.target
        assert enhanced.urgency is base.urgency
        assert enhanced.volume == base.volume
        assert enhanced.average_volume == base.average_volume

    def test_quality_bounds(self):
        pattern = _engulfing()
        base = dataclasses.replace(evaluate_pattern(pattern), signal_quality=99)
        enhanced = SignalEnhancer().enhance(pattern, _history(90, 0.5), base)
        assert enhanced.signal_quality == 100


class TestConflicts:
    def test_flip_within_window_is_halved(self):
        long_pattern = _engulfing()
        short_pattern = _bearish(long_pattern, minutes_later=10)
        history = _history(100, 0.5, n=8)

        fresh = SignalEnhancer().enhance(
            short_pattern, history, evaluate_pattern(short_pattern)
        )

        enhancer = SignalEnhancer()
        enhancer.enhance(long_pattern, history, evaluate_pattern(long_pattern))
        conflicted = enhancer.enhance(
            short_pattern, history, evaluate_pattern(short_pattern)
        )
        assert conflicted.direction is Direction.SHORT
        assert conflicted.signal_quality == pytest.approx(fresh.signal_quality * 0.5)
        assert conflicted.reason.endswith(" ⚠️ CONFLICTING")

    def test_reset_clears_history(self):
        long_pattern = _engulfing()
        short_pattern = _bearish(long_pattern, minutes_later=10)
        history = _history(100, 0.5, n=8)

        enhancer = SignalEnhancer()
        enhancer.enhance(long_pattern, history, evaluate_pattern(long_pattern))
        enhancer.reset()
        result = enhancer.enhance(short_pattern, history, evaluate_pattern(short_pattern))
        assert "CONFLICTING" not in result.reason

    def test_shared_tracker(self):
        tracker = ConflictTracker()
        long_pattern = _engulfing()
        short_pattern = _bearish(long_pattern, minutes_later=10)
        history = _history(100, 0.5, n=8)

        SignalEnhancer(tracker).enhance(long_pattern, history, evaluate_pattern(long_pattern))
        result = SignalEnhancer(tracker).enhance(
            short_pattern, history, evaluate_pattern(short_pattern)
        )
        assert "CONFLICTING" in result.reason


class TestContextMultipliers:
    def test_rr_multiplier(self):
        assert _rr_multiplier(4.0) == 1.08
        assert _rr_multiplier(3.99) == 1.0
        assert _rr_multiplier(2.5) == 1.0
        assert _rr_multiplier(2.4) == 0.95

    def test_risk_multiplier(self):
        assert _risk_multiplier(2.9) == 1.03
        assert _risk_multiplier(3.0) == 1.0
        assert _risk_multiplier(10.0) == 1.0
        assert _risk_multiplier(10.5) == 0.92

    @pytest.mark.parametrize(
        "bearish, entry, expected",
        [
            (False, 120.0, (0.90, " ⚠️ LATE")),
            (True, 80.0, (0.90, " ⚠️ LATE")),
            (False, 105.0, (1.05, " 🎯 GOOD ENTRY")),
            (True, 95.0, (1.05, " 🎯 GOOD ENTRY")),
            (False, 101.0, (1.02, "")),
            (False, 110.0, (1.0, "")),
            (True, 120.0, (1.02, "")),
        ],
    )
    def test_move_adjustment(self, bearish, entry, expected):
        pattern = _engulfing()
        if bearish:
            pattern = _bearish(pattern, minutes_later=0)
        mult, tag = _move_adjustment(pattern, _history(100, 0.0, n=20), entry)
        assert mult == pytest.approx(expected[0])
        assert tag == expected[1]

    def test_move_needs_more_than_ten_candles(self):
        assert _move_adjustment(_engulfing(), _history(100, 0.0, n=10), 120.0) == (1.0, "")

    def test_rr_four_boost(self):
        pattern = _engulfing()
        base = dataclasses.replace(evaluate_pattern(pattern), risk_reward_ratio=4.0)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.5, n=8), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6 * 1.08)

    def test_low_rr_penalty(self):
        pattern = _engulfing()
        base = dataclasses.replace(evaluate_pattern(pattern), risk_reward_ratio=2.4)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.5, n=8), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6 * 0.95)

    @pytest.mark.parametrize("risk_amount, mult", [(2.0, 1.03), (12.0, 0.92)])
    def test_risk_percent(self, risk_amount, mult):
        pattern = _engulfing()
        base = dataclasses.replace(evaluate_pattern(pattern), risk_amount=risk_amount)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.5, n=8), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6 * mult)

    def test_late_entry_reason(self):
        pattern = _engulfing()
        base = dataclasses.replace(evaluate_pattern(pattern), entry_price=120.0)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.0, n=20), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6 * 0.90)
        assert enhanced.reason.endswith("⚠️ CHOPPY (ADX: 0.0) ⚠️ LATE")

    def test_bearish_good_entry_reason(self):
        pattern = _bearish(_engulfing(), minutes_later=0)
        base = dataclasses.replace(evaluate_pattern(pattern), entry_price=95.0)
        enhanced = SignalEnhancer().enhance(pattern, _history(100, 0.0, n=20), base)
        assert enhanced.signal_quality == pytest.approx(base.signal_quality * 0.6 * 1.05)
        assert enhanced.reason.endswith("⚠️ CHOPPY (ADX: 0.0) 🎯 GOOD ENTRY")
