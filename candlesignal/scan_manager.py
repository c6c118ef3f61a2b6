"""ScanManager: runs the signal pipeline over many symbols concurrently.

Each symbol's candle fetch and pipeline run happen in a worker thread so a
slow supply for one symbol does not hold up the others.  All symbols share
the pipeline's conflict tracker, which is keyed per symbol.
"""

import asyncio
import logging
from typing import Optional

from candlesignal.feed.models import CandleSupply
from candlesignal.models.scan_config import ScanConfig
from candlesignal.pipeline import SignalPipeline
from candlesignal.strategy.models import EntrySignal

logger = logging.getLogger("candlesignal.scan_manager")


class ScanManager:
    """Fan-out scanner over a candle supply.

    Args:
        pipeline: Configured ``SignalPipeline``.
        supply:   Anything satisfying ``CandleSupply``.
    """

    def __init__(self, pipeline: SignalPipeline, supply: CandleSupply) -> None:
        self._pipeline = pipeline
        self._supply = supply

    @property
    def pipeline(self) -> SignalPipeline:
        return self._pipeline

    def scan_symbol(
        self,
        symbol: str,
        date: str,
        interval_minutes: int,
        scan_config: Optional[ScanConfig] = None,
    ) -> list[EntrySignal]:
        """Fetch candles for one symbol and run the pipeline over them."""
        candles = self._supply.get_candles(symbol, date, interval_minutes)
        if not candles:
            logger.info("%s: no candles for %s", symbol, date)
            return []
        return self._pipeline.run(symbol, candles, scan_config).signals

    async def scan_symbols(
        self,
        symbols: list[str],
        date: str,
        interval_minutes: int,
        scan_config: Optional[ScanConfig] = None,
    ) -> dict[str, list[EntrySignal]]:
        """Scan every symbol concurrently.

        Returns:
            ``{symbol: [signals]}``, omitting symbols with no signals.  A
            symbol whose fetch or scan raises is logged and omitted.
        """
        tasks = {
            symbol: asyncio.create_task(
                asyncio.to_thread(
                    self.scan_symbol, symbol, date, interval_minutes, scan_config
                )
            )
            for symbol in dict.fromkeys(symbols)
        }

        results: dict[str, list[EntrySignal]] = {}
        for symbol, task in tasks.items():
            try:
                signals = await task
            except Exception as exc:
                logger.error("Scan for '%s' failed: %s", symbol, exc)
                continue
            if signals:
                results[symbol] = signals

        logger.info(
            "Scanned %d symbol(s), %d with signals", len(tasks), len(results)
        )
        return results


def best_opportunities(
    results: dict[str, list[EntrySignal]], limit: int = 10
) -> list[EntrySignal]:
    """Flatten per-symbol results and return the *limit* best by quality."""
    flattened = [s for signals in results.values() for s in signals]
    flattened.sort(key=lambda s: s.signal_quality, reverse=True)
    return flattened[:limit]
