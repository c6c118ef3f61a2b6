"""Pattern list helpers: filtering, ranking and summary counts."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from candlesignal.strategy.models import PatternKind, PatternMatch, Polarity


@dataclass(frozen=True)
class PatternSummary:
    """Counts over a batch of pattern matches."""

    total: int
    bullish: int
    bearish: int
    neutral: int
    by_kind: dict[PatternKind, int] = field(default_factory=dict)


def summarize_patterns(patterns: Iterable[PatternMatch]) -> PatternSummary:
    patterns = list(patterns)
    by_polarity = Counter(p.kind.polarity for p in patterns)
    return PatternSummary(
        total=len(patterns),
        bullish=by_polarity[Polarity.BULLISH],
        bearish=by_polarity[Polarity.BEARISH],
        neutral=by_polarity[Polarity.NEUTRAL],
        by_kind=dict(Counter(p.kind for p in patterns)),
    )


def recent_patterns(patterns: Iterable[PatternMatch], limit: int) -> list[PatternMatch]:
    """The *limit* newest matches, newest first."""
    return sorted(patterns, key=lambda p: p.timestamp, reverse=True)[:limit]


def strongest_patterns(patterns: Iterable[PatternMatch], limit: int) -> list[PatternMatch]:
    """The *limit* highest-confidence matches, best first."""
    return sorted(patterns, key=lambda p: p.confidence, reverse=True)[:limit]


def filter_by_kind(patterns: Iterable[PatternMatch], kind: PatternKind) -> list[PatternMatch]:
    return [p for p in patterns if p.kind is kind]


def filter_by_polarity(patterns: Iterable[PatternMatch], polarity: Polarity) -> list[PatternMatch]:
    return [p for p in patterns if p.kind.polarity is polarity]


def filter_by_confidence(
    patterns: Iterable[PatternMatch], min_confidence: float
) -> list[PatternMatch]:
    return [p for p in patterns if p.confidence >= min_confidence]
