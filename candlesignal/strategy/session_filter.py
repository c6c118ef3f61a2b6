"""Session filter: pure function, checks if a UTC instant falls in regular trading hours."""

from datetime import datetime, time
from zoneinfo import ZoneInfo


def _parse_clock(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def is_in_session(
    timestamp: datetime,
    zone: str = "America/New_York",
    session_start: str = "09:30",
    session_end: str = "16:00",
) -> bool:
    """Return True if *timestamp* falls within the exchange session.

    The instant is converted to wall-clock time in *zone* before the
    comparison, so DST is handled by the zone rules.

    Args:
        timestamp: A tz-aware instant (candles carry UTC).
        zone: IANA zone of the exchange.
        session_start: Local ``HH:MM`` open (inclusive).
        session_end: Local ``HH:MM`` close (exclusive).
    """
    local = timestamp.astimezone(ZoneInfo(zone)).time()
    return _parse_clock(session_start) <= local < _parse_clock(session_end)
