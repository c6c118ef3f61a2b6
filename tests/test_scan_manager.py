"""Tests for ScanManager - concurrent multi-symbol scanning."""

from datetime import datetime, timedelta, timezone

import pytest

from candlesignal.config import PipelineConfig
from candlesignal.feed.models import CandleSupply
from candlesignal.models.scan_config import ScanConfig
from candlesignal.pipeline import SignalPipeline
from candlesignal.scan_manager import ScanManager, best_opportunities
from candlesignal.strategy.models import Candle, PatternKind

_T0 = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)
_NO_GATE = ScanConfig(apply_strength_gate=False)


def _make_config() -> PipelineConfig:
    return PipelineConfig(
        tick_timezone="UTC",
        market_timezone="America/New_York",
        log_level="INFO",
        min_confidence=75.0,
        min_rr_ratio=2.0,
        max_risk_percent=20.0,
        min_risk_amount=0.05,
        conflict_window_minutes=30.0,
        confluence_window_minutes=5.0,
        confluence_price_tolerance=0.02,
        chart_window=30,
    )


def _engulfing_setup(shift: float = 0.0, curr_volume: float = 4000) -> list[Candle]:
    """Lead candle, bearish candle, then a bullish engulfing.

    Lows stay more than 0.5 % apart, so no tweezer bottom fires alongside.
    """
    return [
        Candle(_T0, 101 + shift, 101.5 + shift, 99.5 + shift, 100 + shift, volume=1000),
        Candle(_T0 + timedelta(minutes=1), 100 + shift, 101 + shift, 94 + shift, 95 + shift, volume=1000),
        Candle(_T0 + timedelta(minutes=2), 94 + shift, 107 + shift, 93 + shift, 106 + shift, volume=curr_volume),
    ]


class FakeSupply:
    """In-memory candle supply; raises for symbols mapped to an exception."""

    def __init__(self, data: dict[str, object]) -> None:
        self._data = data
        self.calls: list[tuple[str, str, int]] = []

    def get_candles(self, symbol: str, date: str, interval_minutes: int) -> list[Candle]:
        self.calls.append((symbol, date, interval_minutes))
        value = self._data.get(symbol, [])
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def supply() -> FakeSupply:
    return FakeSupply({
        "AAPL": _engulfing_setup(),
        "MSFT": _engulfing_setup(shift=50.0, curr_volume=2000),
        "FLAT": [],
        "BOOM": RuntimeError("feed unavailable"),
    })


class TestScanManager:
    def test_fake_supply_satisfies_protocol(self, supply):
        assert isinstance(supply, CandleSupply)

    @pytest.mark.asyncio
    async def test_scan_symbols(self, supply):
        manager = ScanManager(SignalPipeline(_make_config()), supply)
        results = await manager.scan_symbols(["AAPL", "MSFT", "FLAT"], "2024-03-15", 1, _NO_GATE)
        assert set(results) == {"AAPL", "MSFT"}
        assert results["AAPL"][0].kind is PatternKind.BULLISH_ENGULFING
        assert ("FLAT", "2024-03-15", 1) in supply.calls

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, supply):
        manager = ScanManager(SignalPipeline(_make_config()), supply)
        results = await manager.scan_symbols(["BOOM", "AAPL"], "2024-03-15", 1, _NO_GATE)
        assert list(results) == ["AAPL"]

    @pytest.mark.asyncio
    async def test_symbols_without_signals_omitted(self, supply):
        manager = ScanManager(SignalPipeline(_make_config()), supply)
        # default strength gate rejects both choppy engulfings
        results = await manager.scan_symbols(["AAPL", "MSFT"], "2024-03-15", 1)
        assert results == {}

    @pytest.mark.asyncio
    async def test_best_opportunities(self, supply):
        manager = ScanManager(SignalPipeline(_make_config()), supply)
        results = await manager.scan_symbols(["AAPL", "MSFT"], "2024-03-15", 1, _NO_GATE)
        best = best_opportunities(results, limit=1)
        assert len(best) == 1
        assert best[0].symbol == "AAPL"

    def test_scan_symbol_sync(self, supply):
        manager = ScanManager(SignalPipeline(_make_config()), supply)
        assert manager.scan_symbol("FLAT", "2024-03-15", 1) == []
        assert len(manager.scan_symbol("AAPL", "2024-03-15", 1, _NO_GATE)) == 1

    @pytest.mark.parametrize("symbol", ["AAPL", "MSFT"])
    def test_fixtures_hold_a_single_engulfing(self, supply, symbol):
        candles = supply.get_candles(symbol, "2024-03-15", 1)
        patterns = SignalPipeline(_make_config()).detect(symbol, candles, _NO_GATE)
        assert [p.kind for p in patterns] == [PatternKind.BULLISH_ENGULFING]
