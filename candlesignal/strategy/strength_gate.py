"""Strength gate: final tiered accept/reject filter on a signal stream.

    Tier 1  chart formations, engulfings, stars,     quality >= 70
            soldiers / crows
    Tier 2  hammer, shooting star, piercing line,     quality >= 75 and volume
            dark cloud cover
    Tier 3  inverted hammer, hanging man, haramis,    quality >= 85 and volume
            tweezers

Any other kind is rejected.  Tier membership lives on ``PatternKind``.
"""

import logging

from candlesignal.strategy.models import GateTier, PatternKind

logger = logging.getLogger("candlesignal.signals")

TIER_RULES: dict[GateTier, tuple[float, bool]] = {
    GateTier.TIER_1: (70.0, False),
    GateTier.TIER_2: (75.0, True),
    GateTier.TIER_3: (85.0, True),
}

_UNREACHABLE_QUALITY = 100.0


def _tier_of(kind: object) -> GateTier:
    if not isinstance(kind, PatternKind):
        return GateTier.NONE
    return kind.gate_tier


def passes_strength_gate(kind: PatternKind, quality: float, has_volume: bool) -> bool:
    """Return True if a signal of *kind* at *quality* clears its tier bar."""
    tier = _tier_of(kind)
    rule = TIER_RULES.get(tier)
    if rule is None:
        logger.warning("Strength gate: %s has no tier, rejecting", getattr(kind, "name", kind))
        return False
    min_quality, needs_volume = rule
    if needs_volume and not has_volume:
        return False
    return quality >= min_quality


def pattern_tier(kind: PatternKind) -> int:
    """1, 2 or 3 for gated kinds, 4 for kinds that never pass."""
    return int(_tier_of(kind))


def required_quality(kind: PatternKind, has_volume: bool) -> float:
    """Minimum quality *kind* needs to pass.

    Returns 100 when the kind cannot pass at all, either because it has no
    tier or because its tier demands volume confirmation that is absent.
    """
    rule = TIER_RULES.get(_tier_of(kind))
    if rule is None:
        return _UNREACHABLE_QUALITY
    min_quality, needs_volume = rule
    if needs_volume and not has_volume:
        return _UNREACHABLE_QUALITY
    return min_quality
