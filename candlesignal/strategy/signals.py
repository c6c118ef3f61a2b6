"""Signal evaluation: turn a detected pattern into a priced, scored entry.

Pure functions, no I/O.  ``evaluate_pattern()`` never consults trend or
history; that context is layered on by :mod:`candlesignal.strategy.enhancer`.
"""

import logging
import math
from typing import Iterable, Optional

from candlesignal.risk.sl_tp import calculate_risk_levels
from candlesignal.strategy.models import (
    Direction,
    EntrySignal,
    PatternKind,
    PatternMatch,
    Urgency,
)

logger = logging.getLogger("candlesignal.signals")

MIN_CONFIDENCE = 75.0
MIN_RR_RATIO = 2.0
MAX_RISK_PERCENT = 20.0
MIN_RISK_AMOUNT = 0.05


# ── Scoring helpers ──────────────────────────────────────────────────────


def rr_points(rr_ratio: float) -> float:
    if rr_ratio >= 4.0:
        return 20.0
    if rr_ratio >= 3.0:
        return 15.0
    if rr_ratio >= 2.0:
        return 10.0
    return 0.0


def calculate_signal_quality(
    kind: PatternKind,
    confidence: float,
    has_volume_confirmation: bool,
    rr_ratio: float,
) -> float:
    """Score a setup on a 0–100 scale.

    Components:
        - ``0.4 × confidence`` (up to 38 for a 95-confidence pattern)
        - 20 for volume confirmation
        - 10 / 15 / 20 for risk/reward of at least 2 / 3 / 4
        - the kind's ``strength_points`` (2–25)
    """
    score = confidence * 0.4
    if has_volume_confirmation:
        score += 20.0
    score += rr_points(rr_ratio)
    score += kind.strength_points
    return min(score, 100.0)


def determine_urgency(quality: float, has_volume_confirmation: bool) -> Urgency:
    if quality >= 85 and has_volume_confirmation:
        return Urgency.IMMEDIATE
    if quality >= 75:
        return Urgency.HIGH
    if quality >= 60:
        return Urgency.MODERATE
    return Urgency.LOW


def build_reason(
    kind: PatternKind,
    price: float,
    confidence: float,
    has_volume_confirmation: bool,
) -> str:
    """E.g. ``"BULLISH ENGULFING at $106.00 (80% conf) + VOLUME"``."""
    volume_tag = " + VOLUME" if has_volume_confirmation else ""
    return f"{kind.label} at ${price:.2f} ({confidence:.0f}% conf){volume_tag}"


def direction_for(pattern: PatternMatch) -> Optional[Direction]:
    """LONG for bullish kinds, SHORT for bearish kinds, ``None`` otherwise."""
    if pattern.is_bullish:
        return Direction.LONG
    if pattern.is_bearish:
        return Direction.SHORT
    return None


# ── Evaluation ───────────────────────────────────────────────────────────


def evaluate_pattern(pattern: PatternMatch) -> Optional[EntrySignal]:
    """Price and score a single pattern.

    Entry is the typical price of the pattern's last candle.  The stop
    sits 1 % beyond the pattern's support (LONG) or resistance (SHORT),
    and the target projects that risk 3:1, or 4:1 for confidence >= 85
    with volume confirmation.

    Returns:
        An ``EntrySignal``, or ``None`` when the pattern has no candles,
        has neutral polarity, or yields a zero / non-finite risk.
    """
    if not pattern.candles:
        return None
    direction = direction_for(pattern)
    if direction is None:
        return None

    candle = pattern.candles[-1]
    entry = candle.typical_price
    levels = calculate_risk_levels(
        direction,
        entry,
        candle,
        pattern.confidence,
        pattern.has_volume_confirmation,
        support=pattern.support_level,
        resistance=pattern.resistance_level,
    )
    if not (math.isfinite(entry) and math.isfinite(levels.risk_amount)):
        return None
    if levels.risk_amount == 0:
        logger.debug("Zero risk for %s at %s, skipping", pattern.kind.name, pattern.timestamp)
        return None

    rr = levels.risk_reward_ratio
    quality = calculate_signal_quality(
        pattern.kind, pattern.confidence, pattern.has_volume_confirmation, rr
    )
    avg_vol = pattern.average_volume
    return EntrySignal(
        symbol=pattern.symbol,
        kind=pattern.kind,
        timestamp=pattern.timestamp,
        entry_price=entry,
        stop_loss=levels.stop_loss,
        target=levels.target,
        risk_amount=levels.risk_amount,
        reward_amount=levels.reward_amount,
        risk_reward_ratio=rr,
        confidence=pattern.confidence,
        has_volume_confirmation=pattern.has_volume_confirmation,
        signal_quality=quality,
        urgency=determine_urgency(quality, pattern.has_volume_confirmation),
        direction=direction,
        reason=build_reason(
            pattern.kind,
            pattern.price_at_detection,
            pattern.confidence,
            pattern.has_volume_confirmation,
        ),
        volume=candle.volume,
        average_volume=avg_vol,
        volume_ratio=candle.volume / avg_vol if avg_vol > 0 else 1.0,
    )


def is_valid_signal(
    signal: EntrySignal,
    min_confidence: float = MIN_CONFIDENCE,
    min_rr_ratio: float = MIN_RR_RATIO,
    max_risk_percent: float = MAX_RISK_PERCENT,
    min_risk_amount: float = MIN_RISK_AMOUNT,
) -> bool:
    """Caller-side validity gate.

    Rejects low confidence, poor risk/reward, risk above *max_risk_percent*
    of entry, and risk below the *min_risk_amount* noise floor.
    """
    if signal.confidence < min_confidence:
        return False
    if signal.risk_reward_ratio < min_rr_ratio:
        return False
    if signal.risk_percent > max_risk_percent:
        return False
    if signal.risk_amount < min_risk_amount:
        return False
    return True


def find_entry_signals(patterns: Iterable[PatternMatch], **gate) -> list[EntrySignal]:
    """Evaluate *patterns*, keep valid signals, best quality first.

    Keyword arguments are forwarded to :func:`is_valid_signal`.
    """
    signals = [
        s for s in (evaluate_pattern(p) for p in patterns)
        if s is not None and is_valid_signal(s, **gate)
    ]
    return sorted(signals, key=lambda s: s.signal_quality, reverse=True)
