"""Candlestick pattern detection: 1-, 2- and 3-candle formations.

Every detector is a pure function returning a ``PatternMatch`` or ``None``.
``scan_candlestick_patterns()`` walks the sequence oldest-first and, for
each index ``i >= 2``, runs the single-candle group on ``i``, the
two-candle group on ``(i-1, i)`` and the three-candle group on
``(i-2, i-1, i)``.  Several detectors may fire on the same index.
"""

import logging
from typing import Optional, Sequence

from candlesignal.feed.candle_builder import average_volume
from candlesignal.strategy.models import Candle, PatternKind, PatternMatch

logger = logging.getLogger("candlesignal.patterns")

MIN_CANDLE_RANGE = 0.05      # single-candle noise floor, in price units
PRICE_TOLERANCE = 0.005      # tweezer high/low match, fraction of price
TREND_LOOKBACK = 5
TREND_FRACTION = 0.6
VOLUME_CONFIRM_RATIO = 1.2
STAR_VOLUME_CONFIRM_RATIO = 1.3


# ── Scoring ──────────────────────────────────────────────────────────────


def calculate_confidence(base: float, volume: float, avg_volume: float) -> float:
    """Adjust *base* confidence by relative volume, bounded to [50, 95].

    With no usable average (``avg_volume <= 0``) the base is returned
    unchanged.
    """
    if avg_volume <= 0:
        return base
    ratio = volume / avg_volume
    if ratio > 1.5:
        return min(base + 10, 95.0)
    if ratio > 1.2:
        return min(base + 5, 95.0)
    if ratio < 0.8:
        return max(base - 10, 50.0)
    return base


def _match(
    kind: PatternKind,
    symbol: str,
    candles: Sequence[Candle],
    confidence: float,
    description: str,
    support: Optional[float] = None,
    resistance: Optional[float] = None,
    avg_volume: float = 0.0,
    volume_confirmed: bool = False,
) -> PatternMatch:
    last = candles[-1]
    return PatternMatch(
        kind=kind,
        symbol=symbol,
        timestamp=last.timestamp,
        interval_minutes=last.interval_minutes,
        candles=tuple(candles),
        confidence=confidence,
        description=description,
        price_at_detection=last.close,
        support_level=support,
        resistance_level=resistance,
        average_volume=avg_volume,
        has_volume_confirmation=volume_confirmed,
    )


# ── Context ──────────────────────────────────────────────────────────────


def _trend_window(candles: Sequence[Candle], index: int, lookback: int) -> int:
    return min(lookback, index)


def is_uptrend(
    candles: Sequence[Candle], index: int, lookback: int = TREND_LOOKBACK
) -> bool:
    """Rising close over *lookback* candles with >= 60 % bullish bodies.

    The lookback shrinks to *index* near the start of the sequence; fewer
    than two candles of history means no trend.
    """
    lb = _trend_window(candles, index, lookback)
    if lb < 2:
        return False
    window = candles[index - lb:index + 1]
    bullish = sum(1 for c in window if c.is_bullish)
    return (
        candles[index].close > candles[index - lb].close
        and bullish / (lb + 1) >= TREND_FRACTION
    )


def is_downtrend(
    candles: Sequence[Candle], index: int, lookback: int = TREND_LOOKBACK
) -> bool:
    """Mirror of :func:`is_uptrend` using bearish bodies."""
    lb = _trend_window(candles, index, lookback)
    if lb < 2:
        return False
    window = candles[index - lb:index + 1]
    bearish = sum(1 for c in window if c.is_bearish)
    return (
        candles[index].close < candles[index - lb].close
        and bearish / (lb + 1) >= TREND_FRACTION
    )


# ── Single-candle shapes ─────────────────────────────────────────────────


def _has_hammer_shape(candle: Candle) -> bool:
    """Small body at the top of the range with a long lower shadow."""
    body = candle.body_size
    return (
        candle.body_pct < 30
        and candle.lower_shadow >= 2 * body
        and candle.upper_shadow < body * 0.3
        and candle.upper_shadow_pct < 20
    )


def _has_inverted_hammer_shape(candle: Candle) -> bool:
    """Small body at the bottom of the range with a long upper shadow."""
    body = candle.body_size
    return (
        candle.body_pct < 30
        and candle.upper_shadow >= 2 * body
        and candle.lower_shadow < body * 0.3
        and candle.lower_shadow_pct < 20
    )


def detect_hammer(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not _has_hammer_shape(candle):
        return None
    return _match(
        PatternKind.HAMMER, symbol, [candle],
        calculate_confidence(70, candle.volume, 0),
        "Hammer: potential bullish reversal",
        support=candle.low,
    )


def detect_hanging_man(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not _has_hammer_shape(candle):
        return None
    return _match(
        PatternKind.HANGING_MAN, symbol, [candle],
        calculate_confidence(65, candle.volume, 0),
        "Hanging Man: potential bearish reversal",
        support=candle.low,
        resistance=candle.high,
    )


def detect_inverted_hammer(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not _has_inverted_hammer_shape(candle):
        return None
    return _match(
        PatternKind.INVERTED_HAMMER, symbol, [candle],
        calculate_confidence(70, candle.volume, 0),
        "Inverted Hammer: potential bullish reversal",
        support=candle.low,
        resistance=candle.high,
    )


def detect_shooting_star(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not _has_inverted_hammer_shape(candle):
        return None
    return _match(
        PatternKind.SHOOTING_STAR, symbol, [candle],
        calculate_confidence(70, candle.volume, 0),
        "Shooting Star: potential bearish reversal",
        resistance=candle.high,
    )


def detect_doji(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not candle.is_doji:
        return None
    return _match(
        PatternKind.DOJI, symbol, [candle], 60,
        "Doji: indecision in the market",
    )


def detect_dragonfly_doji(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not (
        candle.is_doji
        and candle.lower_shadow_pct > 60
        and candle.upper_shadow_pct < 10
    ):
        return None
    return _match(
        PatternKind.DRAGONFLY_DOJI, symbol, [candle], 75,
        "Dragonfly Doji: potential bullish reversal",
        support=candle.low,
    )


def detect_gravestone_doji(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not (
        candle.is_doji
        and candle.upper_shadow_pct > 60
        and candle.lower_shadow_pct < 10
    ):
        return None
    return _match(
        PatternKind.GRAVESTONE_DOJI, symbol, [candle], 75,
        "Gravestone Doji: potential bearish reversal",
        resistance=candle.high,
    )


def detect_spinning_top(candle: Candle, symbol: str) -> Optional[PatternMatch]:
    if not (
        10 < candle.body_pct < 30
        and candle.upper_shadow_pct > 30
        and candle.lower_shadow_pct > 30
    ):
        return None
    return _match(
        PatternKind.SPINNING_TOP, symbol, [candle], 60,
        "Spinning Top: market indecision",
    )


# ── Two-candle formations ────────────────────────────────────────────────


def detect_bullish_engulfing(
    prev: Candle, curr: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    """A bullish body that swallows the previous bearish body."""
    if not (prev.is_bearish and curr.is_bullish):
        return None
    engulfs = curr.open <= prev.close and curr.close >= prev.open
    if not (engulfs and curr.body_pct > 50):
        return None
    return _match(
        PatternKind.BULLISH_ENGULFING, symbol, [prev, curr],
        calculate_confidence(80, curr.volume, avg_volume),
        "Bullish Engulfing: strong reversal signal",
        support=min(prev.low, curr.low),
        avg_volume=avg_volume,
        volume_confirmed=curr.volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


def detect_bearish_engulfing(
    prev: Candle, curr: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    """A bearish body that swallows the previous bullish body."""
    if not (prev.is_bullish and curr.is_bearish):
        return None
    engulfs = curr.open >= prev.close and curr.close <= prev.open
    if not (engulfs and curr.body_pct > 50):
        return None
    return _match(
        PatternKind.BEARISH_ENGULFING, symbol, [prev, curr],
        calculate_confidence(80, curr.volume, avg_volume),
        "Bearish Engulfing: strong reversal signal",
        resistance=max(prev.high, curr.high),
        avg_volume=avg_volume,
        volume_confirmed=curr.volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


def detect_piercing_line(
    prev: Candle, curr: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    if not (prev.is_bearish and curr.is_bullish):
        return None
    prev_mid = (prev.open + prev.close) / 2
    if not (
        curr.open < prev.close
        and curr.close > prev_mid
        and curr.close < prev.open
    ):
        return None
    return _match(
        PatternKind.PIERCING_LINE, symbol, [prev, curr],
        calculate_confidence(75, curr.volume, avg_volume),
        "Piercing Line: bullish reversal",
        support=curr.low,
        avg_volume=avg_volume,
        volume_confirmed=curr.volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


def detect_dark_cloud_cover(
    prev: Candle, curr: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    if not (prev.is_bullish and curr.is_bearish):
        return None
    prev_mid = (prev.open + prev.close) / 2
    if not (
        curr.open > prev.close
        and curr.close < prev_mid
        and curr.close > prev.open
    ):
        return None
    return _match(
        PatternKind.DARK_CLOUD_COVER, symbol, [prev, curr],
        calculate_confidence(75, curr.volume, avg_volume),
        "Dark Cloud Cover: bearish reversal",
        resistance=curr.high,
        avg_volume=avg_volume,
        volume_confirmed=curr.volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


def detect_bullish_harami(prev: Candle, curr: Candle, symbol: str) -> Optional[PatternMatch]:
    if not (prev.is_bearish and curr.is_bullish):
        return None
    if not (
        prev.body_pct > 60
        and curr.has_small_body
        and curr.open >= prev.close
        and curr.close <= prev.open
    ):
        return None
    return _match(
        PatternKind.BULLISH_HARAMI, symbol, [prev, curr], 70,
        "Bullish Harami: potential reversal",
        support=prev.low,
    )


def detect_bearish_harami(prev: Candle, curr: Candle, symbol: str) -> Optional[PatternMatch]:
    if not (prev.is_bullish and curr.is_bearish):
        return None
    if not (
        prev.body_pct > 60
        and curr.has_small_body
        and curr.open <= prev.close
        and curr.close >= prev.open
    ):
        return None
    return _match(
        PatternKind.BEARISH_HARAMI, symbol, [prev, curr], 70,
        "Bearish Harami: potential reversal",
        resistance=prev.high,
    )


def detect_tweezer_bottom(prev: Candle, curr: Candle, symbol: str) -> Optional[PatternMatch]:
    if prev.low <= 0:
        return None
    if not (
        abs(prev.low - curr.low) / prev.low < PRICE_TOLERANCE
        and prev.is_bearish
        and curr.is_bullish
    ):
        return None
    return _match(
        PatternKind.TWEEZER_BOTTOM, symbol, [prev, curr], 70,
        "Tweezer Bottom: support level confirmed",
        support=min(prev.low, curr.low),
    )


def detect_tweezer_top(prev: Candle, curr: Candle, symbol: str) -> Optional[PatternMatch]:
    if prev.high <= 0:
        return None
    if not (
        abs(prev.high - curr.high) / prev.high < PRICE_TOLERANCE
        and prev.is_bullish
        and curr.is_bearish
    ):
        return None
    return _match(
        PatternKind.TWEEZER_TOP, symbol, [prev, curr], 70,
        "Tweezer Top: resistance level confirmed",
        resistance=max(prev.high, curr.high),
    )


# ── Three-candle formations ──────────────────────────────────────────────


def detect_morning_star(
    first: Candle, second: Candle, third: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    """Large bearish body, gapped-down small body, strong bullish recovery."""
    if not first.is_bearish or first.body_pct < 60:
        return None
    first_mid = (first.open + first.close) / 2
    if not (
        second.has_small_body
        and second.high < first.close
        and third.is_bullish
        and third.body_pct > 60
        and third.close > first_mid
    ):
        return None
    return _match(
        PatternKind.MORNING_STAR, symbol, [first, second, third],
        calculate_confidence(85, third.volume, avg_volume),
        "Morning Star: strong bullish reversal",
        support=min(second.low, third.low),
        avg_volume=avg_volume,
        volume_confirmed=third.volume > avg_volume * STAR_VOLUME_CONFIRM_RATIO,
    )


def detect_evening_star(
    first: Candle, second: Candle, third: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    """Large bullish body, gapped-up small body, strong bearish reversal."""
    if not first.is_bullish or first.body_pct < 60:
        return None
    first_mid = (first.open + first.close) / 2
    if not (
        second.has_small_body
        and second.low > first.close
        and third.is_bearish
        and third.body_pct > 60
        and third.close < first_mid
    ):
        return None
    return _match(
        PatternKind.EVENING_STAR, symbol, [first, second, third],
        calculate_confidence(85, third.volume, avg_volume),
        "Evening Star: strong bearish reversal",
        resistance=max(second.high, third.high),
        avg_volume=avg_volume,
        volume_confirmed=third.volume > avg_volume * STAR_VOLUME_CONFIRM_RATIO,
    )


def _opens_near(prev_close: float, open_: float) -> bool:
    return prev_close * 0.95 <= open_ <= prev_close * 1.05


def detect_three_white_soldiers(
    first: Candle, second: Candle, third: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    trio = (first, second, third)
    if not all(c.is_bullish for c in trio):
        return None
    if not (
        all(c.body_pct > 40 for c in trio)
        and first.close < second.close < third.close
        and _opens_near(first.close, second.open)
        and _opens_near(second.close, third.open)
        and all(c.upper_shadow_pct < 35 for c in trio)
    ):
        return None
    trio_volume = sum(c.volume for c in trio) / 3
    return _match(
        PatternKind.THREE_WHITE_SOLDIERS, symbol, trio,
        calculate_confidence(80, trio_volume, avg_volume),
        "Three White Soldiers: strong bullish continuation",
        support=first.low,
        avg_volume=avg_volume,
        volume_confirmed=trio_volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


def detect_three_black_crows(
    first: Candle, second: Candle, third: Candle, symbol: str, avg_volume: float
) -> Optional[PatternMatch]:
    trio = (first, second, third)
    if not all(c.is_bearish for c in trio):
        return None
    if not (
        all(c.body_pct > 40 for c in trio)
        and first.close > second.close > third.close
        and _opens_near(first.close, second.open)
        and _opens_near(second.close, third.open)
        and all(c.lower_shadow_pct < 35 for c in trio)
    ):
        return None
    trio_volume = sum(c.volume for c in trio) / 3
    return _match(
        PatternKind.THREE_BLACK_CROWS, symbol, trio,
        calculate_confidence(80, trio_volume, avg_volume),
        "Three Black Crows: strong bearish continuation",
        resistance=first.high,
        avg_volume=avg_volume,
        volume_confirmed=trio_volume > avg_volume * VOLUME_CONFIRM_RATIO,
    )


# ── Scan ─────────────────────────────────────────────────────────────────


def _single_candle_matches(
    candles: Sequence[Candle], index: int, symbol: str
) -> list[Optional[PatternMatch]]:
    candle = candles[index]
    if candle.range < MIN_CANDLE_RANGE:
        return []

    uptrend = is_uptrend(candles, index)
    downtrend = is_downtrend(candles, index)
    found: list[Optional[PatternMatch]] = []
    if downtrend:
        found.append(detect_hammer(candle, symbol))
    if uptrend:
        found.append(detect_hanging_man(candle, symbol))
    if downtrend:
        found.append(detect_inverted_hammer(candle, symbol))
    if uptrend:
        found.append(detect_shooting_star(candle, symbol))
    found.extend([
        detect_doji(candle, symbol),
        detect_dragonfly_doji(candle, symbol),
        detect_gravestone_doji(candle, symbol),
        detect_spinning_top(candle, symbol),
    ])
    return found


def _two_candle_matches(
    prev: Candle, curr: Candle, symbol: str, avg_volume: float
) -> list[Optional[PatternMatch]]:
    return [
        detect_bullish_engulfing(prev, curr, symbol, avg_volume),
        detect_bearish_engulfing(prev, curr, symbol, avg_volume),
        detect_piercing_line(prev, curr, symbol, avg_volume),
        detect_dark_cloud_cover(prev, curr, symbol, avg_volume),
        detect_bullish_harami(prev, curr, symbol),
        detect_bearish_harami(prev, curr, symbol),
        detect_tweezer_bottom(prev, curr, symbol),
        detect_tweezer_top(prev, curr, symbol),
    ]


def _three_candle_matches(
    first: Candle, second: Candle, third: Candle, symbol: str, avg_volume: float
) -> list[Optional[PatternMatch]]:
    return [
        detect_morning_star(first, second, third, symbol, avg_volume),
        detect_evening_star(first, second, third, symbol, avg_volume),
        detect_three_white_soldiers(first, second, third, symbol, avg_volume),
        detect_three_black_crows(first, second, third, symbol, avg_volume),
    ]


def scan_candlestick_patterns(
    candles: Sequence[Candle], symbol: str
) -> list[PatternMatch]:
    """Scan *candles* (oldest-first) for every candlestick formation.

    Returns:
        Matches in scan order: ascending index, and within an index the
        single-, two- then three-candle groups.  Fewer than three candles
        yields an empty list.
    """
    if len(candles) < 3:
        return []

    avg_vol = average_volume(list(candles))
    results: list[PatternMatch] = []
    for i in range(2, len(candles)):
        found = _single_candle_matches(candles, i, symbol)
        found += _two_candle_matches(candles[i - 1], candles[i], symbol, avg_vol)
        found += _three_candle_matches(
            candles[i - 2], candles[i - 1], candles[i], symbol, avg_vol
        )
        results.extend(m for m in found if m is not None)

    logger.debug("Found %d candlestick patterns for %s", len(results), symbol)
    return results
