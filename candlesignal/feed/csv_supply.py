"""CSV tick/volume loading and a file-backed candle supply.

Layout read by ``CsvCandleSupply``::

    <data_dir>/<SYMBOL>/<YYYY-MM-DD>_ticks.csv    time,price
    <data_dir>/<SYMBOL>/<YYYY-MM-DD>_volume.csv   start,end,volume,interval_minutes  (optional)

Tick ``time`` values are wall-clock strings in the feed timezone; volume
``start``/``end`` are absolute epoch seconds.
"""

import logging
from pathlib import Path

import pandas as pd

from candlesignal.feed.candle_builder import build_candles, volumes_for_interval
from candlesignal.feed.models import Tick, VolumeInterval
from candlesignal.strategy.models import Candle

logger = logging.getLogger("candlesignal.feed.csv")

TICK_COLUMNS = ["time", "price"]
VOLUME_COLUMNS = ["start", "end", "volume", "interval_minutes"]


def _require_columns(df: pd.DataFrame, columns: list[str], path: Path) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s): {', '.join(missing)}")


def load_ticks_csv(path: Path) -> list[Tick]:
    """Read a ``time,price`` CSV into ticks, in file order.

    Raises:
        ValueError: If a required column is absent.
    """
    df = pd.read_csv(path, dtype={"time": str})
    _require_columns(df, TICK_COLUMNS, path)
    df["price"] = pd.to_numeric(df["price"], errors="coerce")
    df = df.dropna(subset=TICK_COLUMNS)
    return [Tick(local_timestamp=t, price=float(p)) for t, p in zip(df["time"], df["price"])]


def load_volumes_csv(path: Path) -> list[VolumeInterval]:
    """Read a ``start,end,volume,interval_minutes`` CSV into volume intervals."""
    df = pd.read_csv(path)
    _require_columns(df, VOLUME_COLUMNS, path)
    df = df.dropna(subset=VOLUME_COLUMNS)
    return [
        VolumeInterval(
            start_epoch_seconds=int(row.start),
            end_epoch_seconds=int(row.end),
            volume=float(row.volume),
            interval_minutes=int(row.interval_minutes),
        )
        for row in df.itertuples(index=False)
    ]


class CsvCandleSupply:
    """``CandleSupply`` backed by per-symbol, per-day CSV files.

    Args:
        data_dir:      Root directory holding one folder per symbol.
        tick_timezone: IANA zone of the tick wall-clock times.
    """

    def __init__(self, data_dir: Path, tick_timezone: str) -> None:
        self._data_dir = Path(data_dir)
        self._tick_timezone = tick_timezone

    def tick_path(self, symbol: str, date: str) -> Path:
        return self._data_dir / symbol / f"{date}_ticks.csv"

    def volume_path(self, symbol: str, date: str) -> Path:
        return self._data_dir / symbol / f"{date}_volume.csv"

    def get_candles(self, symbol: str, date: str, interval_minutes: int) -> list[Candle]:
        tick_path = self.tick_path(symbol, date)
        if not tick_path.exists():
            logger.warning("No tick file for %s on %s (%s)", symbol, date, tick_path)
            return []

        ticks = load_ticks_csv(tick_path)
        volume_path = self.volume_path(symbol, date)
        volumes: list[VolumeInterval] = []
        if volume_path.exists():
            volumes = volumes_for_interval(load_volumes_csv(volume_path), interval_minutes)
        else:
            logger.info("%s: no volume file for %s, candles carry volume 0", symbol, date)

        return build_candles(ticks, volumes, interval_minutes, self._tick_timezone)
