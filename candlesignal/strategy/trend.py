"""Trend detection: two-horizon mean-close comparison plus ADX strength helpers.

``determine_trend()`` compares a short horizon (last 20 candles, halves)
with a medium horizon (last 30 candles, quarters).  When the two readings
disagree the short horizon wins, since it reacts to the most recent
price action.
"""

import logging
from typing import Sequence

from candlesignal.strategy.indicators import calculate_adx, mean_close
from candlesignal.strategy.models import Candle, TrendDirection

logger = logging.getLogger("candlesignal.trend")

MIN_TREND_CANDLES = 30
CHOPPY_ADX = 20.0
STRONG_ADX = 25.0


def _classify(pct_change: float, threshold: float) -> TrendDirection:
    if pct_change > threshold:
        return TrendDirection.UPTREND
    if pct_change < -threshold:
        return TrendDirection.DOWNTREND
    return TrendDirection.NEUTRAL


def _pct(before: float, after: float) -> float:
    if before == 0:
        return 0.0
    return (after - before) / before * 100.0


def short_term_trend(
    candles: Sequence[Candle],
    lookback: int = 20,
    threshold_pct: float = 1.5,
) -> TrendDirection:
    """Compare the mean close of the second half of the window with the first."""
    if len(candles) < lookback:
        return TrendDirection.NEUTRAL
    recent = candles[-lookback:]
    mid = lookback // 2
    first_avg = mean_close(recent[:mid])
    second_avg = mean_close(recent[mid:])
    change = _pct(first_avg, second_avg)
    logger.debug(
        "Short-term: %.2f -> %.2f = %.2f%%", first_avg, second_avg, change
    )
    return _classify(change, threshold_pct)


def medium_term_trend(
    candles: Sequence[Candle],
    lookback: int = 30,
    threshold_pct: float = 3.0,
) -> TrendDirection:
    """Compare the mean close of the last quarter of the window with the first.

    Falls back to every available candle when fewer than *lookback* exist.
    """
    lookback = min(lookback, len(candles))
    quarter = lookback // 4
    if quarter == 0:
        return TrendDirection.NEUTRAL
    recent = candles[-lookback:]
    early_avg = mean_close(recent[:quarter])
    late_avg = mean_close(recent[lookback - quarter:])
    change = _pct(early_avg, late_avg)
    logger.debug(
        "Medium-term: %.2f -> %.2f = %.2f%%", early_avg, late_avg, change
    )
    return _classify(change, threshold_pct)


def determine_trend(candles: Sequence[Candle]) -> TrendDirection:
    """Classify the prevailing trend of *candles* (oldest-first).

    Returns:
        ``NEUTRAL`` with fewer than 30 candles.  Otherwise the agreed
        direction of the two horizons, or the short-term reading when
        they disagree.
    """
    if len(candles) < MIN_TREND_CANDLES:
        return TrendDirection.NEUTRAL

    short = short_term_trend(candles)
    medium = medium_term_trend(candles)
    if short is not medium:
        logger.debug(
            "Horizons disagree (short=%s, medium=%s), using short-term",
            short.value, medium.value,
        )
    return short


def is_choppy_market(candles: Sequence[Candle]) -> bool:
    """ADX below 20: no directional conviction."""
    return calculate_adx(candles) < CHOPPY_ADX


def is_strong_trend(candles: Sequence[Candle]) -> bool:
    """ADX above 25."""
    return calculate_adx(candles) > STRONG_ADX
