"""Chart formation detection: wedges, flags, triangles and double tops/bottoms.

Formations are judged on swing points (local extremes that strictly beat
every neighbour within three candles) and least-squares slopes through
them.  The thresholds are deliberately permissive; they favour recall and
leave precision to the downstream scoring and strength gate.

The ``is_*`` predicates look only at the candles they are given and treat
the last candle as "now".  ``scan_chart_patterns()`` slides them over a
sequence with a trailing window so no detection sees future candles.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from candlesignal.feed.candle_builder import average_volume
from candlesignal.strategy.candlestick_patterns import (
    VOLUME_CONFIRM_RATIO,
    calculate_confidence,
)
from candlesignal.strategy.indicators import price_change_pct, regression_slope
from candlesignal.strategy.models import Candle, PatternKind, PatternMatch

logger = logging.getLogger("candlesignal.patterns")

SWING_LOOKBACK = 3
DEFAULT_CHART_WINDOW = 30
POLE_LENGTH = 5
FLAG_LENGTH = 10


@dataclass(frozen=True)
class SwingPoint:
    """A local extreme at *index* in the analysed window."""

    index: int
    price: float
    is_high: bool


# ── Swing points + trendlines ────────────────────────────────────────────


def find_swing_points(
    candles: Sequence[Candle], lookback: int = SWING_LOOKBACK
) -> list[SwingPoint]:
    """Return swing highs and lows in index order.

    A swing high's high must strictly exceed every other high within
    *lookback* candles on both sides; ties disqualify.  Swing lows mirror
    this on the lows.
    """
    swings: list[SwingPoint] = []
    for i in range(lookback, len(candles) - lookback):
        curr = candles[i]
        neighbours = [
            candles[j] for j in range(i - lookback, i + lookback + 1) if j != i
        ]
        if all(c.high < curr.high for c in neighbours):
            swings.append(SwingPoint(i, curr.high, True))
        if all(c.low > curr.low for c in neighbours):
            swings.append(SwingPoint(i, curr.low, False))
    return swings


def _split_swings(
    swings: list[SwingPoint],
) -> tuple[list[SwingPoint], list[SwingPoint]]:
    highs = [s for s in swings if s.is_high]
    lows = [s for s in swings if not s.is_high]
    return highs, lows


def _slope(points: list[SwingPoint]) -> float:
    return regression_slope([(p.index, p.price) for p in points])


def _near_upper_line(candles: Sequence[Candle], highs: list[SwingPoint]) -> bool:
    if not highs:
        return False
    return candles[-1].close > highs[-1].price * 0.95


def _near_lower_line(candles: Sequence[Candle], lows: list[SwingPoint]) -> bool:
    if not lows:
        return False
    return candles[-1].close < lows[-1].price * 1.05


def _trendline_slopes(
    candles: Sequence[Candle], min_candles: int = 20
) -> Optional[tuple[float, float, list[SwingPoint], list[SwingPoint]]]:
    """Slopes through swing highs and lows, or ``None`` if too few swings."""
    if len(candles) < min_candles:
        return None
    swings = find_swing_points(candles)
    if len(swings) < 4:
        return None
    highs, lows = _split_swings(swings)
    if len(highs) < 2 or len(lows) < 2:
        return None
    return _slope(highs), _slope(lows), highs, lows


# ── Wedges ───────────────────────────────────────────────────────────────


def is_falling_wedge(candles: Sequence[Candle]) -> bool:
    """Both lines falling (lows may tick up slightly), converging, price near resistance."""
    slopes = _trendline_slopes(candles)
    if slopes is None:
        return False
    high_slope, low_slope, highs, _ = slopes
    logger.debug("Falling wedge slopes high=%.6f low=%.6f", high_slope, low_slope)
    return (
        high_slope < 0
        and low_slope < 0.001
        and abs(low_slope) < abs(high_slope)
        and _near_upper_line(candles, highs)
    )


def is_rising_wedge(candles: Sequence[Candle]) -> bool:
    """Both lines rising (highs may tick down slightly), converging, price near support."""
    slopes = _trendline_slopes(candles)
    if slopes is None:
        return False
    high_slope, low_slope, _, lows = slopes
    logger.debug("Rising wedge slopes high=%.6f low=%.6f", high_slope, low_slope)
    return (
        high_slope > -0.001
        and low_slope > 0
        and abs(high_slope) < abs(low_slope)
        and _near_lower_line(candles, lows)
    )


# ── Triangles ────────────────────────────────────────────────────────────


def is_ascending_triangle(candles: Sequence[Candle]) -> bool:
    """Flat resistance, rising support, price near resistance."""
    slopes = _trendline_slopes(candles)
    if slopes is None:
        return False
    high_slope, low_slope, highs, _ = slopes
    return (
        abs(high_slope) < 0.002
        and low_slope > 0.0005
        and _near_upper_line(candles, highs)
    )


def is_descending_triangle(candles: Sequence[Candle]) -> bool:
    """Flat support, falling resistance, price near support."""
    slopes = _trendline_slopes(candles)
    if slopes is None:
        return False
    high_slope, low_slope, _, lows = slopes
    return (
        abs(low_slope) < 0.002
        and high_slope < -0.0005
        and _near_lower_line(candles, lows)
    )


# ── Flags ────────────────────────────────────────────────────────────────


def _flag_window(candles: Sequence[Candle]) -> Optional[tuple[float, float, float]]:
    """Pole change, flag high and flag low for the trailing 15 candles."""
    if len(candles) < POLE_LENGTH + FLAG_LENGTH:
        return None
    n = len(candles)
    pole = price_change_pct(candles, n - 15, n - 15 + POLE_LENGTH)
    flag = candles[-FLAG_LENGTH:]
    return pole, max(c.high for c in flag), min(c.low for c in flag)


def is_bull_flag(candles: Sequence[Candle]) -> bool:
    """A >= 3 % pole followed by a tight, shallow consolidation near its high."""
    window = _flag_window(candles)
    if window is None:
        return False
    pole, flag_high, flag_low = window
    if pole < 3.0 or flag_low <= 0:
        return False
    flag = candles[-FLAG_LENGTH:]
    if (flag_high - flag_low) / flag_low * 100 > 5.0:
        return False
    drift = price_change_pct(flag, 0, len(flag) - 1)
    if drift < -4.0 or drift > 1.0:
        return False
    return flag[-1].close > flag_high * 0.95


def is_bear_flag(candles: Sequence[Candle]) -> bool:
    """A >= 3 % drop followed by a tight, shallow bounce near its low."""
    window = _flag_window(candles)
    if window is None:
        return False
    pole, flag_high, flag_low = window
    if pole > -3.0 or flag_high <= 0:
        return False
    flag = candles[-FLAG_LENGTH:]
    if (flag_high - flag_low) / flag_high * 100 > 5.0:
        return False
    drift = price_change_pct(flag, 0, len(flag) - 1)
    if drift < -1.0 or drift > 4.0:
        return False
    return flag[-1].close < flag_low * 1.05


# ── Double tops / bottoms ────────────────────────────────────────────────


def is_double_bottom(candles: Sequence[Candle]) -> bool:
    """Two similar swing lows >= 5 candles apart with price near the neckline."""
    if len(candles) < 15:
        return False
    lows = [s for s in find_swing_points(candles) if not s.is_high]
    if len(lows) < 2:
        return False
    low1, low2 = lows[-2], lows[-1]
    if low1.price <= 0:
        return False
    if abs(low1.price - low2.price) / low1.price * 100 > 3.0:
        return False
    if low2.index - low1.index < 5:
        return False
    neckline = max(c.high for c in candles[low1.index:low2.index])
    return candles[-1].close > neckline * 0.96


def is_double_top(candles: Sequence[Candle]) -> bool:
    """Two similar swing highs >= 5 candles apart with price near the neckline."""
    if len(candles) < 15:
        return False
    highs = [s for s in find_swing_points(candles) if s.is_high]
    if len(highs) < 2:
        return False
    high1, high2 = highs[-2], highs[-1]
    if high1.price <= 0:
        return False
    if abs(high1.price - high2.price) / high1.price * 100 > 3.0:
        return False
    if high2.index - high1.index < 5:
        return False
    neckline = min(c.low for c in candles[high1.index:high2.index])
    return candles[-1].close < neckline * 1.04


# ── Scan ─────────────────────────────────────────────────────────────────


_CHART_DETECTORS: tuple[tuple[PatternKind, Callable[[Sequence[Candle]], bool], float, str], ...] = (
    (PatternKind.FALLING_WEDGE, is_falling_wedge, 80, "Falling Wedge: converging downtrend near breakout"),
    (PatternKind.RISING_WEDGE, is_rising_wedge, 80, "Rising Wedge: converging uptrend near breakdown"),
    (PatternKind.BULL_FLAG, is_bull_flag, 75, "Bull Flag: consolidation after a rally"),
    (PatternKind.BEAR_FLAG, is_bear_flag, 75, "Bear Flag: consolidation after a drop"),
    (PatternKind.ASCENDING_TRIANGLE, is_ascending_triangle, 80, "Ascending Triangle: rising lows under flat resistance"),
    (PatternKind.DESCENDING_TRIANGLE, is_descending_triangle, 80, "Descending Triangle: falling highs over flat support"),
    (PatternKind.DOUBLE_BOTTOM, is_double_bottom, 80, "Double Bottom: retest of support near the neckline"),
    (PatternKind.DOUBLE_TOP, is_double_top, 80, "Double Top: retest of resistance near the neckline"),
)


def _chart_match(
    kind: PatternKind,
    window: Sequence[Candle],
    symbol: str,
    base: float,
    description: str,
) -> PatternMatch:
    last = window[-1]
    avg_vol = average_volume(list(window))
    return PatternMatch(
        kind=kind,
        symbol=symbol,
        timestamp=last.timestamp,
        interval_minutes=last.interval_minutes,
        candles=tuple(window),
        confidence=calculate_confidence(base, last.volume, avg_vol),
        description=description,
        price_at_detection=last.close,
        support_level=min(c.low for c in window) if kind.is_bullish else None,
        resistance_level=max(c.high for c in window) if kind.is_bearish else None,
        average_volume=avg_vol,
        has_volume_confirmation=last.volume > avg_vol * VOLUME_CONFIRM_RATIO,
    )


def scan_chart_patterns(
    candles: Sequence[Candle],
    symbol: str,
    window: int = DEFAULT_CHART_WINDOW,
) -> list[PatternMatch]:
    """Slide every chart detector over *candles* (oldest-first).

    Each end index ``i >= 14`` is evaluated on the trailing *window*
    candles ending at ``i``.  A formation that keeps firing on consecutive
    end indices is reported once, at the first index of the run.

    Returns:
        Matches in ascending end-index order.
    """
    results: list[PatternMatch] = []
    firing: dict[PatternKind, bool] = {}
    for end in range(14, len(candles)):
        view = candles[max(0, end + 1 - window):end + 1]
        for kind, detector, base, description in _CHART_DETECTORS:
            fired = detector(view)
            if fired and not firing.get(kind, False):
                results.append(_chart_match(kind, view, symbol, base, description))
                logger.info(
                    "%s detected for %s at %s",
                    kind.display_name, symbol, view[-1].timestamp.isoformat(),
                )
            firing[kind] = fired

    logger.debug("Found %d chart patterns for %s", len(results), symbol)
    return results
