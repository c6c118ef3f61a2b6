"""Signal enhancement: re-score an entry against trend, ADX, context and history.

Every adjustment is a multiplier on the base quality:

    trend         counter ×0.40 | with ×1.20 (+10 confidence, cap 95)
    ADX           < 20 ×0.60    | > 25 ×1.15
    move (~50)    late ×0.90    | 3–8 % ×1.05 | early ×1.02
    risk/reward   >= 4 ×1.08    | < 2.5 ×0.95
    risk %        < 3 ×1.03     | > 10 ×0.92

A signal that flips direction within the conflict window of the last
one for its symbol then has its quality halved.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from candlesignal.risk.conflict_tracker import ConflictTracker
from candlesignal.strategy.indicators import calculate_adx
from candlesignal.strategy.models import (
    Candle,
    EntrySignal,
    PatternMatch,
    TrendDirection,
)
from candlesignal.strategy.signals import build_reason
from candlesignal.strategy.trend import CHOPPY_ADX, STRONG_ADX, determine_trend

logger = logging.getLogger("candlesignal.signals")

COUNTER_TREND_MULT = 0.4
WITH_TREND_MULT = 1.2
WITH_TREND_CONFIDENCE_BOOST = 10.0
CONFIDENCE_CAP = 95.0
CHOPPY_MULT = 0.6
STRONG_TREND_MULT = 1.15
MOVE_LOOKBACK = 50
CONFLICT_MULT = 0.5


@dataclass(frozen=True)
class _Adjustment:
    multiplier: float
    confidence: float
    tags: str


def _trend_adjustment(
    pattern: PatternMatch, trend: TrendDirection, confidence: float
) -> _Adjustment:
    if pattern.is_bullish and trend is TrendDirection.DOWNTREND:
        logger.debug("Counter-trend: bullish %s in downtrend", pattern.kind.name)
        return _Adjustment(COUNTER_TREND_MULT, confidence, " ⚠️ COUNTER-TREND (in downtrend)")
    if pattern.is_bearish and trend is TrendDirection.UPTREND:
        logger.debug("Counter-trend: bearish %s in uptrend", pattern.kind.name)
        return _Adjustment(COUNTER_TREND_MULT, confidence, " ⚠️ COUNTER-TREND (in uptrend)")
    if (pattern.is_bullish and trend is TrendDirection.UPTREND) or (
        pattern.is_bearish and trend is TrendDirection.DOWNTREND
    ):
        boosted = min(CONFIDENCE_CAP, confidence + WITH_TREND_CONFIDENCE_BOOST)
        return _Adjustment(WITH_TREND_MULT, boosted, " ✅ WITH TREND")
    return _Adjustment(1.0, confidence, " (neutral trend)")


def _adx_adjustment(adx: float) -> tuple[float, str]:
    if adx < CHOPPY_ADX:
        return CHOPPY_MULT, f" ⚠️ CHOPPY (ADX: {adx:.1f})"
    if adx > STRONG_ADX:
        return STRONG_TREND_MULT, f" ✅ STRONG TREND (ADX: {adx:.1f})"
    return 1.0, ""


def _move_adjustment(
    pattern: PatternMatch, candles: Sequence[Candle], entry_price: float
) -> tuple[float, str]:
    """Penalise late entries and reward the 3–8 % sweet spot.

    Movement is measured from the close ~50 candles back, signed in the
    pattern's favour.  Only applies with more than 10 candles of history.
    """
    if len(candles) <= 10:
        return 1.0, ""
    anchor = candles[max(0, len(candles) - MOVE_LOOKBACK)].close
    if anchor == 0:
        return 1.0, ""
    move = (entry_price - anchor) / anchor * 100.0
    if pattern.is_bearish:
        move = -move
    elif not pattern.is_bullish:
        return 1.0, ""

    if move > 15:
        return 0.90, " ⚠️ LATE"
    if 3 < move < 8:
        return 1.05, " 🎯 GOOD ENTRY"
    if move < 2:
        return 1.02, ""
    return 1.0, ""


def _rr_multiplier(rr_ratio: float) -> float:
    if rr_ratio >= 4.0:
        return 1.08
    if rr_ratio < 2.5:
        return 0.95
    return 1.0


def _risk_multiplier(risk_percent: float) -> float:
    if risk_percent < 3.0:
        return 1.03
    if risk_percent > 10.0:
        return 0.92
    return 1.0


class SignalEnhancer:
    """Applies trend and context scoring plus the conflict check.

    Args:
        conflict_tracker: Shared per-symbol history.  A private tracker is
                          created when omitted.
    """

    def __init__(self, conflict_tracker: Optional[ConflictTracker] = None) -> None:
        self._tracker = conflict_tracker if conflict_tracker is not None else ConflictTracker()

    @property
    def conflict_tracker(self) -> ConflictTracker:
        return self._tracker

    def enhance(
        self,
        pattern: PatternMatch,
        candles: Sequence[Candle],
        base_signal: EntrySignal,
    ) -> EntrySignal:
        """Return a re-scored copy of *base_signal*.

        Args:
            pattern: The match *base_signal* was evaluated from.
            candles: History up to and including the pattern's last candle.
            base_signal: Output of ``evaluate_pattern(pattern)``.
        """
        trend = determine_trend(candles)
        adx = calculate_adx(candles)

        trend_adj = _trend_adjustment(pattern, trend, base_signal.confidence)
        adx_mult, adx_tag = _adx_adjustment(adx)
        move_mult, move_tag = _move_adjustment(pattern, candles, base_signal.entry_price)

        multiplier = (
            trend_adj.multiplier
            * adx_mult
            * move_mult
            * _rr_multiplier(base_signal.risk_reward_ratio)
            * _risk_multiplier(base_signal.risk_percent)
        )
        quality = max(0.0, min(100.0, base_signal.signal_quality * multiplier))

        reason = build_reason(
            pattern.kind,
            pattern.price_at_detection,
            trend_adj.confidence,
            pattern.has_volume_confirmation,
        ) + trend_adj.tags + adx_tag + move_tag

        enhanced = replace(
            base_signal,
            confidence=trend_adj.confidence,
            signal_quality=quality,
            reason=reason,
        )

        if self._tracker.check_and_record(
            enhanced.symbol, enhanced.timestamp, enhanced.direction
        ):
            enhanced = replace(
                enhanced,
                signal_quality=enhanced.signal_quality * CONFLICT_MULT,
                reason=enhanced.reason + " ⚠️ CONFLICTING",
            )

        logger.debug(
            "Enhanced %s %s: quality %.1f -> %.1f (trend=%s, adx=%.1f)",
            enhanced.symbol, enhanced.kind.name,
            base_signal.signal_quality, enhanced.signal_quality,
            trend.value, adx,
        )
        return enhanced

    def reset(self) -> None:
        """Clear the conflict history (e.g. once per trading day)."""
        self._tracker.reset()
