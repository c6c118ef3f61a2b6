"""Detector registry: maps detector names to detector classes.

Used by SignalPipeline to instantiate the detectors a ScanConfig asks for.
"""

from typing import Sequence

from candlesignal.strategy.base import PatternDetector
from candlesignal.strategy.candlestick_patterns import scan_candlestick_patterns
from candlesignal.strategy.chart_patterns import DEFAULT_CHART_WINDOW, scan_chart_patterns
from candlesignal.strategy.models import Candle, PatternMatch


class CandlestickDetector:
    """1-, 2- and 3-candle formations."""

    def scan(self, candles: Sequence[Candle], symbol: str) -> list[PatternMatch]:
        return scan_candlestick_patterns(candles, symbol)


class ChartDetector:
    """Wedges, flags, triangles and double tops/bottoms over a trailing window."""

    def __init__(self, window: int = DEFAULT_CHART_WINDOW) -> None:
        self.window = window

    def scan(self, candles: Sequence[Candle], symbol: str) -> list[PatternMatch]:
        return scan_chart_patterns(candles, symbol, window=self.window)


DETECTOR_REGISTRY: dict[str, type] = {
    "candlestick": CandlestickDetector,
    "chart": ChartDetector,
}


def get_detector(name: str, **kwargs) -> PatternDetector:
    """Look up and instantiate a detector by registry key.

    Raises ``KeyError`` if the detector name is not registered.
    """
    if name not in DETECTOR_REGISTRY:
        raise KeyError(
            f"Unknown detector '{name}'. "
            f"Available: {', '.join(DETECTOR_REGISTRY.keys())}"
        )
    return DETECTOR_REGISTRY[name](**kwargs)
