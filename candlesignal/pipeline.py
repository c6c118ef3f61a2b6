"""SignalPipeline: candles in, filtered and ranked entry signals out.

One run over a candle sequence:

    detect → evaluate → (validity gate) → enhance → confluence
      → pattern-type filter → strength gate → session → direction
      → min quality → rank → limit

Detection and scoring are pure.  The only state carried between runs is
the enhancer's conflict tracker, which callers reset via :meth:`reset`.
"""

import bisect
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from candlesignal.config import PipelineConfig
from candlesignal.models.scan_config import ScanConfig, matches_pattern_type
from candlesignal.risk.conflict_tracker import ConflictTracker
from candlesignal.strategy.confluence import merge_confluent
from candlesignal.strategy.enhancer import SignalEnhancer
from candlesignal.strategy.models import Candle, EntrySignal, PatternMatch
from candlesignal.strategy.registry import get_detector
from candlesignal.strategy.session_filter import is_in_session
from candlesignal.strategy.signals import evaluate_pattern, is_valid_signal
from candlesignal.strategy.strength_gate import passes_strength_gate
from candlesignal.strategy.summary import PatternSummary, summarize_patterns

logger = logging.getLogger("candlesignal.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    """Everything one pipeline run produced for a symbol."""

    symbol: str
    patterns: list[PatternMatch] = field(default_factory=list)
    signals: list[EntrySignal] = field(default_factory=list)

    @property
    def summary(self) -> PatternSummary:
        return summarize_patterns(self.patterns)


def ensure_ascending(candles: Sequence[Candle]) -> None:
    """Raise ``ValueError`` unless timestamps strictly increase."""
    for prev, curr in zip(candles, candles[1:]):
        if curr.timestamp <= prev.timestamp:
            raise ValueError(
                "Candles must be sorted strictly ascending by timestamp: "
                f"{prev.timestamp.isoformat()} followed by {curr.timestamp.isoformat()}"
            )


class SignalPipeline:
    """Runs detection, scoring, enhancement, merging and filtering.

    Args:
        config: ``PipelineConfig`` supplying thresholds and timezones.
        conflict_tracker: Shared conflict history.  Pass one tracker to
                          several pipelines to share it across them; a
                          private tracker is created when omitted.
    """

    def __init__(
        self,
        config: PipelineConfig,
        conflict_tracker: Optional[ConflictTracker] = None,
    ) -> None:
        self._config = config
        tracker = conflict_tracker or ConflictTracker(config.conflict_window_minutes)
        self._enhancer = SignalEnhancer(tracker)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def reset(self) -> None:
        """Clear the conflict history between independent runs."""
        self._enhancer.reset()

    # ── Stages ───────────────────────────────────────────────────────────

    def detect(
        self,
        symbol: str,
        candles: Sequence[Candle],
        scan_config: Optional[ScanConfig] = None,
    ) -> list[PatternMatch]:
        """Run the detectors named in *scan_config*, in the order listed."""
        scan_config = scan_config or ScanConfig()
        patterns: list[PatternMatch] = []
        for name in scan_config.detectors:
            kwargs = {"window": self._config.chart_window} if name == "chart" else {}
            patterns.extend(get_detector(name, **kwargs).scan(candles, symbol))
        return patterns

    def score(
        self,
        candles: Sequence[Candle],
        patterns: list[PatternMatch],
        scan_config: ScanConfig,
    ) -> list[EntrySignal]:
        """Evaluate and enhance each pattern using only candles up to it.

        Patterns are scored in time order (stable across detectors), since
        the conflict tracker compares each signal with the one before it.
        """
        timestamps = [c.timestamp for c in candles]
        signals: list[EntrySignal] = []
        for pattern in sorted(patterns, key=lambda p: p.timestamp):
            base = evaluate_pattern(pattern)
            if base is None:
                continue
            if scan_config.apply_validity_gate and not is_valid_signal(
                base, **self._config.validity_thresholds
            ):
                continue
            history = candles[:bisect.bisect_right(timestamps, pattern.timestamp)]
            if not history:
                continue
            signals.append(self._enhancer.enhance(pattern, history, base))
        return signals

    def _keep(self, signal: EntrySignal, scan_config: ScanConfig) -> bool:
        if not matches_pattern_type(signal.kind, scan_config.pattern_filter):
            return False
        if scan_config.apply_strength_gate and not passes_strength_gate(
            signal.kind, signal.signal_quality, signal.has_volume_confirmation
        ):
            return False
        if scan_config.strict_market_hours and not is_in_session(
            signal.timestamp, self._config.market_timezone
        ):
            return False
        if scan_config.direction is not None and signal.direction is not scan_config.direction:
            return False
        return signal.signal_quality >= scan_config.min_quality

    # ── Entry point ──────────────────────────────────────────────────────

    def run(
        self,
        symbol: str,
        candles: Sequence[Candle],
        scan_config: Optional[ScanConfig] = None,
    ) -> PipelineResult:
        """Produce the filtered, ranked signals for one candle sequence.

        Raises:
            ValueError: If *candles* are not strictly ascending by time.
        """
        scan_config = scan_config or ScanConfig()
        ensure_ascending(candles)

        patterns = self.detect(symbol, candles, scan_config)
        scored = self.score(candles, patterns, scan_config)
        merged = merge_confluent(
            scored,
            time_window_minutes=self._config.confluence_window_minutes,
            price_tolerance=self._config.confluence_price_tolerance,
        )
        kept = [s for s in merged if self._keep(s, scan_config)]
        kept.sort(key=lambda s: s.signal_quality, reverse=True)
        if scan_config.max_signals is not None:
            kept = kept[:scan_config.max_signals]

        logger.info(
            "%s: %d patterns, %d scored, %d after confluence, %d kept",
            symbol, len(patterns), len(scored), len(merged), len(kept),
        )
        return PipelineResult(symbol=symbol, patterns=patterns, signals=kept)
