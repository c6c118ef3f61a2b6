"""Scan tick data for entry signals and print them.

Usage (from the project root):
    python -m scripts.scan_ticks --symbol AAPL --ticks data/AAPL/2024-03-15_ticks.csv
    python -m scripts.scan_ticks --symbol AAPL --ticks t.csv --volume v.csv --interval 5
    python -m scripts.scan_ticks --data-dir data --date 2024-03-15 --symbols AAPL MSFT NVDA

Single-file mode reads one tick CSV (``time,price``) and an optional volume
CSV (``start,end,volume,interval_minutes``).  Directory mode scans several
symbols concurrently from ``<data-dir>/<SYMBOL>/<date>_ticks.csv``.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from candlesignal.config import PipelineConfig, load_config
from candlesignal.feed.candle_builder import build_candles, volumes_for_interval
from candlesignal.feed.csv_supply import CsvCandleSupply, load_ticks_csv, load_volumes_csv
from candlesignal.models.scan_config import PatternTypeFilter, ScanConfig
from candlesignal.pipeline import SignalPipeline
from candlesignal.scan_manager import ScanManager, best_opportunities
from candlesignal.strategy.models import Direction, EntrySignal

logger = logging.getLogger("candlesignal.scan")


def _print_signal(signal: EntrySignal, zone: str) -> None:
    print(
        f"{signal.timestamp_in(zone)}  {signal.symbol:<6} {signal.direction.value:<5} "
        f"{signal.kind.label:<22} entry={signal.entry_price:.2f} "
        f"sl={signal.stop_loss:.2f} tp={signal.target:.2f} "
        f"rr={signal.risk_reward_ratio:.2f} q={signal.signal_quality:.1f} "
        f"[{signal.urgency.value}]"
    )
    for line in signal.reason.splitlines():
        print(f"        {line}")


def _scan_file(args: argparse.Namespace, config: PipelineConfig, scan_config: ScanConfig) -> None:
    ticks = load_ticks_csv(Path(args.ticks))
    volumes = []
    if args.volume:
        volumes = volumes_for_interval(load_volumes_csv(Path(args.volume)), args.interval)

    candles = build_candles(ticks, volumes, args.interval, config.tick_timezone)
    result = SignalPipeline(config).run(args.symbol, candles, scan_config)

    summary = result.summary
    logger.info(
        "%s: %d candles, %d patterns (%d bullish, %d bearish, %d neutral)",
        args.symbol, len(candles), summary.total,
        summary.bullish, summary.bearish, summary.neutral,
    )
    for signal in result.signals:
        _print_signal(signal, config.market_timezone)


async def _scan_dir(args: argparse.Namespace, config: PipelineConfig, scan_config: ScanConfig) -> None:
    supply = CsvCandleSupply(Path(args.data_dir), config.tick_timezone)
    manager = ScanManager(SignalPipeline(config), supply)
    results = await manager.scan_symbols(args.symbols, args.date, args.interval, scan_config)
    for signal in best_opportunities(results, args.limit):
        _print_signal(signal, config.market_timezone)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Detect candle patterns and entry signals in tick data")
    parser.add_argument("--symbol", default="SYMBOL")
    parser.add_argument("--ticks", help="Tick CSV with time,price columns")
    parser.add_argument("--volume", help="Optional volume CSV")
    parser.add_argument("--data-dir", help="Directory mode: root of <SYMBOL>/<date>_ticks.csv files")
    parser.add_argument("--date", help="Directory mode: YYYY-MM-DD")
    parser.add_argument("--symbols", nargs="+", default=[])
    parser.add_argument("--interval", type=int, default=1, help="Candle width in minutes")
    parser.add_argument(
        "--pattern-filter",
        choices=[f.value for f in PatternTypeFilter],
        default=PatternTypeFilter.ALL.value,
    )
    parser.add_argument("--direction", choices=[d.value for d in Direction])
    parser.add_argument("--min-quality", type=float, default=0.0)
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--validity-gate", action="store_true")
    parser.add_argument("--no-strength-gate", action="store_true")
    parser.add_argument("--market-hours", action="store_true")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    scan_config = ScanConfig(
        pattern_filter=PatternTypeFilter(args.pattern_filter),
        apply_validity_gate=args.validity_gate,
        apply_strength_gate=not args.no_strength_gate,
        strict_market_hours=args.market_hours,
        direction=Direction(args.direction) if args.direction else None,
        min_quality=args.min_quality,
        max_signals=args.limit,
    )

    if args.data_dir:
        if not args.date or not args.symbols:
            parser.error("--data-dir needs --date and --symbols")
        asyncio.run(_scan_dir(args, config, scan_config))
    elif args.ticks:
        _scan_file(args, config, scan_config)
    else:
        parser.error("pass --ticks or --data-dir")
