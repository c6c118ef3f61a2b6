"""Scan configuration dataclass.

Describes which detectors run and which filters apply to one pipeline
run over a candle sequence.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from candlesignal.strategy.models import Direction, PatternKind


class PatternTypeFilter(str, Enum):
    ALL = "ALL"
    CHART_ONLY = "CHART_ONLY"
    CANDLESTICK_ONLY = "CANDLESTICK_ONLY"
    STRONG_ONLY = "STRONG_ONLY"


def matches_pattern_type(kind: PatternKind, pattern_filter: PatternTypeFilter) -> bool:
    """Return True if *kind* is admitted by *pattern_filter*."""
    if pattern_filter is PatternTypeFilter.CHART_ONLY:
        return kind.is_chart_pattern
    if pattern_filter is PatternTypeFilter.CANDLESTICK_ONLY:
        return not kind.is_chart_pattern
    if pattern_filter is PatternTypeFilter.STRONG_ONLY:
        return kind.in_strong_filter
    return True


@dataclass(frozen=True)
class ScanConfig:
    """Options for a single :class:`~candlesignal.pipeline.SignalPipeline` run.

    ``detectors`` are registry keys (see ``candlesignal.strategy.registry``).
    ``direction=None`` keeps both LONG and SHORT signals and
    ``max_signals=None`` keeps every signal that survives the filters.
    """

    detectors: tuple[str, ...] = ("candlestick", "chart")
    pattern_filter: PatternTypeFilter = PatternTypeFilter.ALL
    apply_validity_gate: bool = False
    apply_strength_gate: bool = True
    strict_market_hours: bool = False
    direction: Optional[Direction] = None
    min_quality: float = 0.0
    max_signals: Optional[int] = None
