"""Candle construction: aggregate wall-clock ticks + epoch volume into UTC bars.

Tick timestamps arrive as wall-clock strings in the feed's own timezone;
volume intervals arrive as absolute epoch seconds.  Both are aligned to
the same UTC bucket grid here so every emitted candle starts on a multiple
of ``interval_minutes * 60`` seconds since the epoch.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from candlesignal.feed.models import Tick, VolumeInterval
from candlesignal.strategy.models import Candle

logger = logging.getLogger("candlesignal.candles")

_TICK_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


def resolve_zone(name: str) -> ZoneInfo:
    """Return the ``ZoneInfo`` for an IANA zone name.

    Raises ``ValueError`` if the zone is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{name}'") from exc


def truncate_epoch(epoch_seconds: int, interval_minutes: int) -> int:
    """Floor *epoch_seconds* to the start of its ``interval_minutes`` bucket."""
    interval_seconds = interval_minutes * 60
    return (epoch_seconds // interval_seconds) * interval_seconds


def parse_tick_time(local_timestamp: str, zone: ZoneInfo) -> Optional[int]:
    """Convert a wall-clock tick string in *zone* to UTC epoch seconds.

    Returns ``None`` when the string matches none of the accepted formats.
    """
    for fmt in _TICK_FORMATS:
        try:
            local = datetime.strptime(local_timestamp.strip(), fmt)
        except ValueError:
            continue
        return int(local.replace(tzinfo=zone).timestamp())
    return None


def _build_volume_map(volumes: list[VolumeInterval]) -> dict[int, float]:
    """Key each volume record by its own truncated start epoch.

    The truncation uses the record's ``interval_minutes`` rather than the
    candle interval, so mismatched metadata still lands on its own grid.
    A later record for the same bucket overwrites an earlier one.
    """
    volume_map: dict[int, float] = {}
    for iv in volumes:
        if iv.interval_minutes <= 0 or iv.volume < 0:
            logger.warning(
                "Skipping malformed volume interval start=%s interval=%s volume=%s",
                iv.start_epoch_seconds, iv.interval_minutes, iv.volume,
            )
            continue
        key = truncate_epoch(iv.start_epoch_seconds, iv.interval_minutes)
        volume_map[key] = iv.volume
    logger.debug("Volume map holds %d buckets", len(volume_map))
    return volume_map


def volumes_for_interval(
    volumes: list[VolumeInterval], interval_minutes: int
) -> list[VolumeInterval]:
    """Keep only the volume records published at *interval_minutes* width."""
    return [iv for iv in volumes if iv.interval_minutes == interval_minutes]


def build_candles(
    ticks: list[Tick],
    volumes: list[VolumeInterval],
    interval_minutes: int,
    tick_timezone: str,
) -> list[Candle]:
    """Aggregate *ticks* into OHLCV candles of *interval_minutes*.

    Args:
        ticks: Raw trades, wall-clock timestamps in *tick_timezone*.
        volumes: Volume intervals keyed by absolute epoch seconds.
        interval_minutes: Candle width in minutes.
        tick_timezone: IANA zone name of the tick timestamps.

    Returns:
        Candles sorted ascending by UTC start time, one per non-empty
        bucket.  Buckets without a matching volume record get volume 0.

    Raises:
        ValueError: If *interval_minutes* is not positive or
            *tick_timezone* is not a known IANA zone.
    """
    if interval_minutes <= 0:
        raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
    zone = resolve_zone(tick_timezone)

    if not ticks:
        logger.debug("No ticks supplied, nothing to build")
        return []

    buckets: dict[int, list[tuple[int, float]]] = {}
    skipped = 0
    for tick in ticks:
        epoch = parse_tick_time(tick.local_timestamp, zone)
        if epoch is None or not math.isfinite(tick.price):
            logger.warning(
                "Skipping malformed tick time=%r price=%r",
                tick.local_timestamp, tick.price,
            )
            skipped += 1
            continue
        key = truncate_epoch(epoch, interval_minutes)
        buckets.setdefault(key, []).append((epoch, tick.price))

    volume_map = _build_volume_map(volumes or [])

    candles: list[Candle] = []
    for start in sorted(buckets):
        trades = sorted(buckets[start], key=lambda t: t[0])
        prices = [price for _, price in trades]
        candles.append(
            Candle(
                timestamp=datetime.fromtimestamp(start, tz=timezone.utc),
                open=prices[0],
                high=max(prices),
                low=min(prices),
                close=prices[-1],
                volume=volume_map.get(start, 0.0),
                interval_minutes=interval_minutes,
            )
        )

    logger.info(
        "Built %d candles from %d ticks (%d skipped, %dm interval)",
        len(candles), len(ticks), skipped, interval_minutes,
    )
    return candles


# ── Aggregates ───────────────────────────────────────────────────────────


def average_volume(candles: list[Candle], positive_only: bool = False) -> float:
    """Mean candle volume.

    With *positive_only*, zero-volume bars (no volume record) are ignored.
    Returns 0 when nothing is left to average.
    """
    values = [c.volume for c in candles if not positive_only or c.volume > 0]
    if not values:
        return 0.0
    return sum(values) / len(values)
