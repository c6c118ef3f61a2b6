"""Technical indicators: ADX, regression slope, price change. Pure functions, no I/O."""

import logging
from typing import Sequence

import numpy as np

from candlesignal.strategy.models import Candle

logger = logging.getLogger("candlesignal.trend")

ADX_CAP = 95.0


# ── ADX ──────────────────────────────────────────────────────────────────


def calculate_adx(candles: Sequence[Candle], period: int = 14) -> float:
    """Calculate a single-window Average Directional Index reading.

    Uses the last *period* candles, each compared with the candle before
    it:

        1. +DM = up move if it beats the down move and is positive, else 0.
        2. −DM = down move if it beats the up move and is positive, else 0.
        3. TR  = max(range, |high − prev_close|, |low − prev_close|).
        4. Sums are divided by *period*; +DI / −DI = 100 × DM / TR.
        5. DX  = 100 × |+DI − −DI| / (+DI + −DI), capped at 95.

    Returns 0 when fewer than ``period + 1`` candles are supplied or when
    the TR sum or DI sum is zero (a flat series), never NaN.
    """
    if len(candles) < period + 1:
        return 0.0

    plus_dm_sum = 0.0
    minus_dm_sum = 0.0
    tr_sum = 0.0
    for i in range(len(candles) - period, len(candles)):
        curr = candles[i]
        prev = candles[i - 1]

        up_move = curr.high - prev.high
        down_move = prev.low - curr.low
        plus_dm_sum += up_move if (up_move > down_move and up_move > 0) else 0.0
        minus_dm_sum += down_move if (down_move > up_move and down_move > 0) else 0.0

        tr_sum += max(
            curr.range,
            abs(curr.high - prev.close),
            abs(curr.low - prev.close),
        )

    smooth_tr = tr_sum / period
    if smooth_tr == 0:
        logger.debug("ADX: true range is zero, returning 0")
        return 0.0

    plus_di = 100.0 * (plus_dm_sum / period) / smooth_tr
    minus_di = 100.0 * (minus_dm_sum / period) / smooth_tr
    di_sum = plus_di + minus_di
    if di_sum == 0:
        logger.debug("ADX: DI sum is zero, returning 0")
        return 0.0

    dx = min(ADX_CAP, 100.0 * abs(plus_di - minus_di) / di_sum)
    logger.debug("ADX: +DI=%.2f -DI=%.2f DX=%.2f", plus_di, minus_di, dx)
    if dx > 90:
        logger.warning("ADX %.1f is unusually high, check data quality", dx)
    return dx


# ── Regression / price change ────────────────────────────────────────────


def regression_slope(points: Sequence[tuple[int, float]]) -> float:
    """Least-squares slope of ``(index, price)`` pairs.

        slope = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²)

    Returns 0 for fewer than two points or a zero denominator.
    """
    if len(points) < 2:
        return 0.0
    xs = np.array([p[0] for p in points], dtype=float)
    ys = np.array([p[1] for p in points], dtype=float)
    n = len(points)
    denominator = n * np.sum(xs * xs) - np.sum(xs) ** 2
    if denominator == 0:
        return 0.0
    return float((n * np.sum(xs * ys) - np.sum(xs) * np.sum(ys)) / denominator)


def price_change_pct(candles: Sequence[Candle], start: int, end: int) -> float:
    """Percent change from ``close[start]`` to ``close[end]``.

    Returns 0 when either index is out of bounds or the start close is 0.
    """
    if start < 0 or end >= len(candles) or start >= len(candles) or end < 0:
        return 0.0
    first = candles[start].close
    if first == 0:
        return 0.0
    return (candles[end].close - first) / first * 100.0


def mean_close(candles: Sequence[Candle]) -> float:
    """Arithmetic mean of closes, 0 for an empty window."""
    if not candles:
        return 0.0
    return float(np.mean([c.close for c in candles]))
