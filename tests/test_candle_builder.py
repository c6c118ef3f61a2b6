"""Tests for candle construction from wall-clock ticks and epoch volume."""

from datetime import datetime, timezone

import pytest

from candlesignal.feed.candle_builder import (
    average_volume,
    build_candles,
    parse_tick_time,
    resolve_zone,
    truncate_epoch,
    volumes_for_interval,
)
from candlesignal.feed.models import Tick, VolumeInterval
from candlesignal.strategy.models import Candle

# 2024-03-15 10:00:00 in New York (EDT, UTC-4) == 14:00:00 UTC
NY_10AM_EPOCH = int(datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc).timestamp())


def _make_candle(o: float, h: float, l: float, c: float, vol: float = 0.0) -> Candle:
    return Candle(
        timestamp=datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc),
        open=o, high=h, low=l, close=c, volume=vol,
    )


class TestTruncation:
    def test_floors_to_interval_start(self):
        assert truncate_epoch(NY_10AM_EPOCH + 299, 5) == NY_10AM_EPOCH
        assert truncate_epoch(NY_10AM_EPOCH + 300, 5) == NY_10AM_EPOCH + 300

    def test_exact_boundary_is_unchanged(self):
        assert truncate_epoch(NY_10AM_EPOCH, 1) == NY_10AM_EPOCH


class TestParsing:
    def test_space_separated(self):
        zone = resolve_zone("America/New_York")
        assert parse_tick_time("2024-03-15 10:00:00", zone) == NY_10AM_EPOCH

    def test_iso_separator(self):
        zone = resolve_zone("America/New_York")
        assert parse_tick_time("2024-03-15T10:00:00", zone) == NY_10AM_EPOCH

    def test_garbage_returns_none(self):
        zone = resolve_zone("UTC")
        assert parse_tick_time("not a time", zone) is None

    def test_unknown_zone_raises(self):
        with pytest.raises(ValueError, match="Mars/Olympus"):
            resolve_zone("Mars/Olympus")


class TestBuildCandles:
    def test_ohlc_from_ticks(self):
        ticks = [
            Tick("2024-03-15 10:00:05", 100.0),
            Tick("2024-03-15 10:00:20", 102.0),
            Tick("2024-03-15 10:00:40", 99.0),
            Tick("2024-03-15 10:00:59", 101.0),
        ]
        candles = build_candles(ticks, [], 1, "America/New_York")
        assert len(candles) == 1
        c = candles[0]
        assert c.timestamp == datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc)
        assert (c.open, c.high, c.low, c.close) == (100.0, 102.0, 99.0, 101.0)
        assert c.volume == 0.0
        assert c.interval_minutes == 1

    def test_ticks_out_of_order_are_sorted_within_bucket(self):
        ticks = [
            Tick("2024-03-15 10:00:50", 105.0),
            Tick("2024-03-15 10:00:01", 100.0),
        ]
        c = build_candles(ticks, [], 1, "America/New_York")[0]
        assert c.open == 100.0
        assert c.close == 105.0

    def test_timestamps_are_utc_interval_starts(self):
        ticks = [
            Tick("2024-03-15 10:01:30", 100.0),
            Tick("2024-03-15 10:07:10", 101.0),
            Tick("2024-03-15 10:03:00", 100.5),
        ]
        candles = build_candles(ticks, [], 5, "America/New_York")
        assert [c.timestamp.minute for c in candles] == [0, 5]
        for c in candles:
            assert c.timestamp.tzinfo is timezone.utc
            assert int(c.timestamp.timestamp()) % 300 == 0

    def test_strictly_ascending(self):
        ticks = [
            Tick(f"2024-03-15 10:{m:02d}:00", 100.0 + m) for m in (9, 3, 7, 1, 5)
        ]
        candles = build_candles(ticks, [], 1, "America/New_York")
        stamps = [c.timestamp for c in candles]
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)

    def test_volume_joined_by_bucket(self):
        ticks = [Tick("2024-03-15 10:00:10", 100.0), Tick("2024-03-15 10:01:10", 101.0)]
        volumes = [VolumeInterval(NY_10AM_EPOCH, NY_10AM_EPOCH + 60, 5000.0, 1)]
        candles = build_candles(ticks, volumes, 1, "America/New_York")
        assert candles[0].volume == 5000.0
        assert candles[1].volume == 0.0

    def test_volume_truncated_by_its_own_interval(self):
        ticks = [Tick("2024-03-15 10:00:10", 100.0)]
        volumes = [VolumeInterval(NY_10AM_EPOCH + 30, NY_10AM_EPOCH + 90, 700.0, 1)]
        candles = build_candles(ticks, volumes, 1, "America/New_York")
        assert candles[0].volume == 700.0

    def test_later_volume_record_wins(self):
        ticks = [Tick("2024-03-15 10:00:10", 100.0)]
        volumes = [
            VolumeInterval(NY_10AM_EPOCH, NY_10AM_EPOCH + 60, 100.0, 1),
            VolumeInterval(NY_10AM_EPOCH, NY_10AM_EPOCH + 60, 250.0, 1),
        ]
        assert build_candles(ticks, volumes, 1, "America/New_York")[0].volume == 250.0

    def test_malformed_volume_is_skipped(self):
        ticks = [Tick("2024-03-15 10:00:10", 100.0)]
        volumes = [VolumeInterval(NY_10AM_EPOCH, NY_10AM_EPOCH + 60, 300.0, 0)]
        assert build_candles(ticks, volumes, 1, "America/New_York")[0].volume == 0.0

    def test_malformed_ticks_are_skipped(self):
        ticks = [
            Tick("garbage", 100.0),
            Tick("2024-03-15 10:00:10", float("nan")),
            Tick("2024-03-15 10:00:20", 101.0),
        ]
        candles = build_candles(ticks, [], 1, "America/New_York")
        assert len(candles) == 1
        assert candles[0].open == 101.0

    def test_empty_ticks(self):
        assert build_candles([], [], 1, "UTC") == []

    def test_non_positive_interval_raises(self):
        with pytest.raises(ValueError, match="interval_minutes"):
            build_candles([Tick("2024-03-15 10:00:00", 1.0)], [], 0, "UTC")

    def test_unknown_zone_raises(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            build_candles([Tick("2024-03-15 10:00:00", 1.0)], [], 1, "Nowhere/City")


class TestVolumeFilter:
    def test_keeps_matching_interval_only(self):
        volumes = [
            VolumeInterval(0, 60, 1.0, 1),
            VolumeInterval(0, 300, 5.0, 5),
            VolumeInterval(60, 120, 2.0, 1),
        ]
        kept = volumes_for_interval(volumes, 1)
        assert [v.volume for v in kept] == [1.0, 2.0]


class TestAggregates:
    def test_averages(self):
        candles = [
            _make_candle(100, 104, 98, 102, vol=1000),
            _make_candle(102, 103, 99, 100, vol=0),
        ]
        assert average_volume(candles) == pytest.approx(500.0)
        assert average_volume(candles, positive_only=True) == pytest.approx(1000.0)

    def test_empty(self):
        assert average_volume([]) == 0.0


class TestCandleProperties:
    def test_geometry(self):
        c = _make_candle(100, 105, 95, 102)
        assert c.body_size == pytest.approx(2.0)
        assert c.upper_shadow == pytest.approx(3.0)
        assert c.lower_shadow == pytest.approx(5.0)
        assert c.range == pytest.approx(10.0)
        assert c.body_pct == pytest.approx(20.0)
        assert c.is_bullish and not c.is_bearish
        assert c.has_small_body and not c.has_large_body

    def test_zero_range_percentages(self):
        c = _make_candle(100, 100, 100, 100)
        assert c.body_pct == 0.0
        assert c.upper_shadow_pct == 0.0
        assert not c.is_doji
