"""Stop-loss and target calculation: pure math, no I/O.

The stop is anchored just beyond the level the pattern defends:

    LONG:  SL = 0.99 × support     (falls back to the pattern candle's low)
    SHORT: SL = 1.01 × resistance  (falls back to the pattern candle's high)

The target projects the resulting risk by a reward multiple (3:1, or 4:1
for high-confidence, volume-confirmed setups).
"""

from dataclasses import dataclass
from typing import Optional

from candlesignal.strategy.models import Candle, Direction

STOP_BUFFER_PCT = 1.0
DEFAULT_REWARD_MULTIPLE = 3.0
STRONG_REWARD_MULTIPLE = 4.0
STRONG_CONFIDENCE = 85.0


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and target for a trade."""

    stop_loss: float
    target: float
    risk_amount: float
    reward_amount: float

    @property
    def risk_reward_ratio(self) -> float:
        """Reward / risk rounded to 6 places, 0 when risk is 0."""
        if self.risk_amount == 0:
            return 0.0
        return round(self.reward_amount / self.risk_amount, 6)


def calculate_stop_loss(
    direction: Direction,
    candle: Candle,
    support: Optional[float] = None,
    resistance: Optional[float] = None,
) -> float:
    """Place the stop 1 % beyond the defended level.

    A missing or non-positive level falls back to the candle's own
    extreme.
    """
    buffer = STOP_BUFFER_PCT / 100.0
    if direction is Direction.LONG:
        anchor = support if support is not None and support > 0 else candle.low
        return anchor * (1.0 - buffer)
    anchor = resistance if resistance is not None and resistance > 0 else candle.high
    return anchor * (1.0 + buffer)


def reward_multiple(confidence: float, has_volume_confirmation: bool) -> float:
    """4:1 for confident, volume-backed setups, otherwise 3:1."""
    if confidence >= STRONG_CONFIDENCE and has_volume_confirmation:
        return STRONG_REWARD_MULTIPLE
    return DEFAULT_REWARD_MULTIPLE


def calculate_target(
    direction: Direction,
    entry_price: float,
    stop_loss: float,
    multiple: float,
) -> float:
    """Project the entry-to-stop distance *multiple* times in the profit direction."""
    risk = abs(entry_price - stop_loss)
    if direction is Direction.LONG:
        return entry_price + risk * multiple
    return entry_price - risk * multiple


def calculate_risk_levels(
    direction: Direction,
    entry_price: float,
    candle: Candle,
    confidence: float,
    has_volume_confirmation: bool,
    support: Optional[float] = None,
    resistance: Optional[float] = None,
) -> RiskLevels:
    """Bundle stop, target and the risk / reward distances for an entry."""
    stop = calculate_stop_loss(direction, candle, support, resistance)
    target = calculate_target(
        direction, entry_price, stop,
        reward_multiple(confidence, has_volume_confirmation),
    )
    return RiskLevels(
        stop_loss=stop,
        target=target,
        risk_amount=abs(entry_price - stop),
        reward_amount=abs(target - entry_price),
    )
