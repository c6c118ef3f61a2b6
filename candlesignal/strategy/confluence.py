"""Confluence merging: fold co-located signals into one boosted signal.

Two signals are *confluent* when they share a direction, fire within
``time_window_minutes`` of each other, and their entry prices differ by no
more than ``price_tolerance`` of the first entry.

Grouping is a single greedy left-to-right pass: the first unprocessed
signal seeds a group and absorbs every later unprocessed signal that is
confluent *with the seed*.  The pass is order-dependent.  For a chain
where A~B and B~C but not A~C, A seeds and absorbs B, and C is left to
seed its own group.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Sequence

from candlesignal.strategy.models import Confluence, Direction, EntrySignal, Urgency

logger = logging.getLogger("candlesignal.signals")

DEFAULT_TIME_WINDOW_MINUTES = 5.0
DEFAULT_PRICE_TOLERANCE = 0.02


def is_confluent(
    first: EntrySignal,
    second: EntrySignal,
    time_window_minutes: float = DEFAULT_TIME_WINDOW_MINUTES,
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
) -> bool:
    if first.direction is not second.direction:
        return False
    if abs(first.timestamp - second.timestamp) > timedelta(minutes=time_window_minutes):
        return False
    if first.entry_price == 0:
        return False
    price_diff = abs(first.entry_price - second.entry_price) / first.entry_price
    return price_diff <= price_tolerance


def confluence_bonus(group: Sequence[EntrySignal]) -> float:
    """Quality bonus for a merged group.

    10 / 15 / 20 for 2 / 3 / 4+ members, +5 when chart and candlestick
    formations are mixed, +5 when at least two members are strong kinds.
    """
    count = len(group)
    if count >= 4:
        bonus = 20.0
    elif count == 3:
        bonus = 15.0
    elif count == 2:
        bonus = 10.0
    else:
        bonus = 0.0

    has_chart = any(s.kind.is_chart_pattern for s in group)
    has_candle = any(not s.kind.is_chart_pattern for s in group)
    if has_chart and has_candle:
        bonus += 5.0
    if sum(1 for s in group if s.kind.is_strong) >= 2:
        bonus += 5.0
    return bonus


def confluence_urgency(quality: float) -> Urgency:
    if quality >= 95:
        return Urgency.IMMEDIATE
    if quality >= 85:
        return Urgency.HIGH
    if quality >= 75:
        return Urgency.MODERATE
    return Urgency.LOW


def _distinct(values: list[str]) -> list[str]:
    seen: list[str] = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return seen


def _merge_group(group: Sequence[EntrySignal]) -> EntrySignal:
    # max() keeps the first of equal-quality members
    best = max(group, key=lambda s: s.signal_quality)
    by_quality = sorted(group, key=lambda s: s.signal_quality, reverse=True)
    count = len(group)

    quality = min(100.0, best.signal_quality + confluence_bonus(group))
    confidence = min(100.0, best.confidence + 2 * count)

    stops = [s.stop_loss for s in group]
    targets = [s.target for s in group]
    if best.direction is Direction.LONG:
        stop, target = max(stops), max(targets)
    else:
        stop, target = min(stops), min(targets)
    risk = abs(best.entry_price - stop)
    reward = abs(target - best.entry_price)

    has_volume = any(s.has_volume_confirmation for s in group)
    names = _distinct([s.kind.name for s in by_quality])

    volume_tag = " + VOLUME" if has_volume else ""
    header = " + ".join(_distinct([s.kind.label for s in by_quality]))
    lines = [
        f"{header} (CONFLUENCE: {count} patterns) at ${best.entry_price:.2f} "
        f"({best.confidence:.0f}% conf){volume_tag}",
        "📊 Patterns:",
    ]
    lines += [
        f"  • {s.kind.label} ({s.signal_quality:.0f}% quality)" for s in by_quality
    ]

    return replace(
        best,
        stop_loss=stop,
        target=target,
        risk_amount=risk,
        reward_amount=reward,
        risk_reward_ratio=reward / risk if risk > 0 else 0.0,
        confidence=confidence,
        has_volume_confirmation=has_volume,
        signal_quality=quality,
        urgency=confluence_urgency(quality),
        reason="\n".join(lines),
        volume_ratio=max(s.volume_ratio for s in group),
        confluence=Confluence(count=count, merged_pattern_names=tuple(names)),
    )


def merge_confluent(
    signals: Sequence[EntrySignal],
    time_window_minutes: float = DEFAULT_TIME_WINDOW_MINUTES,
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE,
) -> list[EntrySignal]:
    """Greedily merge confluent signals, preserving seed order.

    Returns:
        One signal per group, in the order the seeds appear in *signals*.
        Singletons are re-emitted with ``confluence=None``.
    """
    if len(signals) < 2:
        return [replace(s, confluence=None) for s in signals]

    processed = [False] * len(signals)
    result: list[EntrySignal] = []
    for i, seed in enumerate(signals):
        if processed[i]:
            continue
        processed[i] = True
        group = [seed]
        for j in range(i + 1, len(signals)):
            if processed[j]:
                continue
            if is_confluent(seed, signals[j], time_window_minutes, price_tolerance):
                group.append(signals[j])
                processed[j] = True

        if len(group) == 1:
            result.append(replace(seed, confluence=None))
        else:
            merged = _merge_group(group)
            logger.info(
                "Confluence for %s: %d patterns merged at %.2f (quality %.1f)",
                merged.symbol, len(group), merged.entry_price, merged.signal_quality,
            )
            result.append(merged)

    logger.debug("Confluence pass: %d signals -> %d", len(signals), len(result))
    return result
