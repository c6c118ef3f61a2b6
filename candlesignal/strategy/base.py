"""Pattern detector protocol.

Defines the interface every detector plugged into the pipeline implements.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from candlesignal.strategy.models import Candle, PatternMatch


@runtime_checkable
class PatternDetector(Protocol):
    """Interface that all pattern detectors must satisfy."""

    def scan(self, candles: Sequence[Candle], symbol: str) -> list[PatternMatch]:
        """Return every match in *candles* (oldest-first), in detection order."""
        ...
