"""Feed-side data models: raw ticks, volume intervals, and the candle supply seam."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from candlesignal.strategy.models import Candle


@dataclass(frozen=True)
class Tick:
    """A single trade observation.

    ``local_timestamp`` is wall-clock time in the feed's own timezone,
    formatted ``YYYY-MM-DD HH:MM:SS``.
    """

    local_timestamp: str
    price: float


@dataclass(frozen=True)
class VolumeInterval:
    """Traded volume for one interval, keyed by absolute epoch seconds."""

    start_epoch_seconds: int
    end_epoch_seconds: int
    volume: float
    interval_minutes: int


@runtime_checkable
class CandleSupply(Protocol):
    """Anything that can hand the pipeline a day of candles for a symbol.

    Implementations return candles sorted ascending by UTC timestamp and
    an empty list when there is no data.
    """

    def get_candles(
        self, symbol: str, date: str, interval_minutes: int
    ) -> list[Candle]:
        ...
