"""Strategy data models: candles, pattern kinds, matches and entry signals."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.

    ``timestamp`` is the tz-aware UTC *start* of the interval.
    """

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    interval_minutes: int = 1

    # ── Geometry ─────────────────────────────────────────────────────────

    @property
    def body_size(self) -> float:
        return abs(self.close - self.open)

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body_pct(self) -> float:
        """Body as a percentage of the full range (0 when range is 0)."""
        if self.range == 0:
            return 0.0
        return self.body_size / self.range * 100.0

    @property
    def upper_shadow_pct(self) -> float:
        if self.range == 0:
            return 0.0
        return self.upper_shadow / self.range * 100.0

    @property
    def lower_shadow_pct(self) -> float:
        if self.range == 0:
            return 0.0
        return self.lower_shadow / self.range * 100.0

    # ── Classification ───────────────────────────────────────────────────

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def is_doji(self) -> bool:
        return self.range > 0 and self.body_pct < 10.0

    @property
    def has_small_body(self) -> bool:
        return self.body_pct < 30.0

    @property
    def has_large_body(self) -> bool:
        return self.body_pct > 70.0

    @property
    def typical_price(self) -> float:
        """(high + low + close) / 3, a wick-resistant fill estimate."""
        return (self.high + self.low + self.close) / 3.0


# ── Enumerations ─────────────────────────────────────────────────────────


class Polarity(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class GateTier(int, Enum):
    """Strength-gate class of a pattern kind (``NONE`` never passes)."""

    TIER_1 = 1
    TIER_2 = 2
    TIER_3 = 3
    NONE = 4


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class Urgency(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"


class TrendDirection(str, Enum):
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    NEUTRAL = "NEUTRAL"


class PatternKind(Enum):
    """Every candlestick and chart formation the detectors can report.

    Each member carries its static metadata:

    - ``display_name``: human-readable name.
    - ``polarity``: bullish / bearish / neutral.
    - ``required_candles``: window length the formation spans.
    - ``strength_points``: quality points awarded by the signal evaluator.
    - ``gate_tier``: class used by the final strength gate.
    - ``is_strong``: counts toward the confluence strong-pattern bonus.
    - ``in_strong_filter``: admitted by the STRONG_ONLY pattern-type filter.
    """

    # Single candle
    HAMMER = ("Hammer", Polarity.BULLISH, 1, 15, GateTier.TIER_2, False, False)
    INVERTED_HAMMER = ("Inverted Hammer", Polarity.BULLISH, 1, 10, GateTier.TIER_3, False, False)
    HANGING_MAN = ("Hanging Man", Polarity.BEARISH, 1, 10, GateTier.TIER_3, False, False)
    SHOOTING_STAR = ("Shooting Star", Polarity.BEARISH, 1, 15, GateTier.TIER_2, False, False)
    DOJI = ("Doji", Polarity.NEUTRAL, 1, 2, GateTier.NONE, False, False)
    DRAGONFLY_DOJI = ("Dragonfly Doji", Polarity.BULLISH, 1, 2, GateTier.NONE, False, False)
    GRAVESTONE_DOJI = ("Gravestone Doji", Polarity.BEARISH, 1, 2, GateTier.NONE, False, False)
    SPINNING_TOP = ("Spinning Top", Polarity.NEUTRAL, 1, 2, GateTier.NONE, False, False)

    # Two candle
    BULLISH_ENGULFING = ("Bullish Engulfing", Polarity.BULLISH, 2, 20, GateTier.TIER_1, True, True)
    BEARISH_ENGULFING = ("Bearish Engulfing", Polarity.BEARISH, 2, 20, GateTier.TIER_1, True, True)
    PIERCING_LINE = ("Piercing Line", Polarity.BULLISH, 2, 10, GateTier.TIER_2, False, False)
    DARK_CLOUD_COVER = ("Dark Cloud Cover", Polarity.BEARISH, 2, 10, GateTier.TIER_2, False, False)
    BULLISH_HARAMI = ("Bullish Harami", Polarity.BULLISH, 2, 5, GateTier.TIER_3, False, False)
    BEARISH_HARAMI = ("Bearish Harami", Polarity.BEARISH, 2, 5, GateTier.TIER_3, False, False)
    TWEEZER_BOTTOM = ("Tweezer Bottom", Polarity.BULLISH, 2, 5, GateTier.TIER_3, False, False)
    TWEEZER_TOP = ("Tweezer Top", Polarity.BEARISH, 2, 5, GateTier.TIER_3, False, False)

    # Three candle
    MORNING_STAR = ("Morning Star", Polarity.BULLISH, 3, 20, GateTier.TIER_1, True, True)
    EVENING_STAR = ("Evening Star", Polarity.BEARISH, 3, 20, GateTier.TIER_1, True, True)
    THREE_WHITE_SOLDIERS = ("Three White Soldiers", Polarity.BULLISH, 3, 15, GateTier.TIER_1, False, False)
    THREE_BLACK_CROWS = ("Three Black Crows", Polarity.BEARISH, 3, 15, GateTier.TIER_1, False, False)

    # Chart formations
    FALLING_WEDGE = ("Falling Wedge", Polarity.BULLISH, 20, 25, GateTier.TIER_1, True, True)
    RISING_WEDGE = ("Rising Wedge", Polarity.BEARISH, 20, 25, GateTier.TIER_1, True, True)
    BULL_FLAG = ("Bull Flag", Polarity.BULLISH, 15, 22, GateTier.TIER_1, False, True)
    BEAR_FLAG = ("Bear Flag", Polarity.BEARISH, 15, 22, GateTier.TIER_1, False, True)
    ASCENDING_TRIANGLE = ("Ascending Triangle", Polarity.BULLISH, 20, 22, GateTier.TIER_1, True, False)
    DESCENDING_TRIANGLE = ("Descending Triangle", Polarity.BEARISH, 20, 22, GateTier.TIER_1, True, False)
    DOUBLE_BOTTOM = ("Double Bottom", Polarity.BULLISH, 15, 22, GateTier.TIER_1, True, False)
    DOUBLE_TOP = ("Double Top", Polarity.BEARISH, 15, 22, GateTier.TIER_1, True, False)

    def __init__(
        self,
        display_name: str,
        polarity: Polarity,
        required_candles: int,
        strength_points: int,
        gate_tier: GateTier,
        is_strong: bool,
        in_strong_filter: bool,
    ) -> None:
        self.display_name = display_name
        self.polarity = polarity
        self.required_candles = required_candles
        self.strength_points = strength_points
        self.gate_tier = gate_tier
        self.is_strong = is_strong
        self.in_strong_filter = in_strong_filter

    @property
    def is_chart_pattern(self) -> bool:
        return self.required_candles >= 15

    @property
    def is_bullish(self) -> bool:
        return self.polarity is Polarity.BULLISH

    @property
    def is_bearish(self) -> bool:
        return self.polarity is Polarity.BEARISH

    @property
    def label(self) -> str:
        """Upper-case name used in signal reasons, e.g. ``BULL FLAG``."""
        return self.name.replace("_", " ")


# ── Pattern + signal value types ─────────────────────────────────────────


@dataclass(frozen=True)
class PatternMatch:
    """A detected formation ending at ``timestamp`` (the last candle)."""

    kind: PatternKind
    symbol: str
    timestamp: datetime
    interval_minutes: int
    candles: tuple[Candle, ...]
    confidence: float
    description: str
    price_at_detection: float
    support_level: Optional[float] = None
    resistance_level: Optional[float] = None
    average_volume: float = 0.0
    has_volume_confirmation: bool = False

    @property
    def is_bullish(self) -> bool:
        return self.kind.is_bullish

    @property
    def is_bearish(self) -> bool:
        return self.kind.is_bearish

    @property
    def signal(self) -> str:
        """``"BUY"``, ``"SELL"`` or ``"NEUTRAL"`` from the kind's polarity."""
        if self.is_bullish:
            return "BUY"
        if self.is_bearish:
            return "SELL"
        return "NEUTRAL"


@dataclass(frozen=True)
class Confluence:
    """Provenance of a merged signal."""

    count: int
    merged_pattern_names: tuple[str, ...]


@dataclass(frozen=True)
class EntrySignal:
    """A priced, scored trade candidate derived from a ``PatternMatch``.

    Pipeline stages never mutate a signal; they derive a new one with
    ``dataclasses.replace``.
    """

    symbol: str
    kind: PatternKind
    timestamp: datetime
    entry_price: float
    stop_loss: float
    target: float
    risk_amount: float
    reward_amount: float
    risk_reward_ratio: float
    confidence: float
    has_volume_confirmation: bool
    signal_quality: float
    urgency: Urgency
    direction: Direction
    reason: str
    volume: float = 0.0
    average_volume: float = 0.0
    volume_ratio: float = 1.0
    confluence: Optional[Confluence] = None

    @property
    def risk_percent(self) -> float:
        if self.entry_price == 0:
            return 0.0
        return self.risk_amount / self.entry_price * 100.0

    @property
    def reward_percent(self) -> float:
        if self.entry_price == 0:
            return 0.0
        return self.reward_amount / self.entry_price * 100.0

    def timestamp_in(self, zone: str) -> str:
        """Format the signal time as ``YYYY-MM-DD HH:MM:SS`` wall clock in *zone*."""
        return self.timestamp.astimezone(ZoneInfo(zone)).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
