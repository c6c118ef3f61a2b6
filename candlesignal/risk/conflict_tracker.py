"""Conflict tracking: flags a signal that flips direction soon after the last one.

Holds the only mutable state in the signal pipeline, the most recent
``(timestamp, direction)`` per symbol.  Calls for the same symbol are
serialised by a per-symbol lock; different symbols never contend.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from candlesignal.strategy.models import Direction

logger = logging.getLogger("candlesignal.signals")


class ConflictTracker:
    """Remembers the last signal per symbol and detects direction flips.

    Args:
        window_minutes: Two opposite-direction signals closer than this
                        are considered conflicting (default 30).
    """

    def __init__(self, window_minutes: float = 30.0) -> None:
        if window_minutes <= 0:
            raise ValueError(
                f"window_minutes must be positive, got {window_minutes}"
            )
        self._window = timedelta(minutes=window_minutes)
        self._recent: dict[str, tuple[datetime, Direction]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, symbol: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = threading.Lock()
                self._locks[symbol] = lock
            return lock

    # ── Mutation ─────────────────────────────────────────────────────────

    def check_and_record(
        self, symbol: str, timestamp: datetime, direction: Direction
    ) -> bool:
        """Return ``True`` if this signal conflicts with the tracked one.

        A conflict is the opposite direction within the window.  A
        conflicting signal leaves the tracked entry untouched; anything
        else replaces it.
        """
        with self._lock_for(symbol):
            previous = self._recent.get(symbol)
            if previous is not None:
                prev_time, prev_direction = previous
                if (
                    prev_direction is not direction
                    and abs(timestamp - prev_time) < self._window
                ):
                    logger.info(
                        "Conflicting %s signal for %s at %s (previous %s at %s)",
                        direction.value, symbol, timestamp.isoformat(),
                        prev_direction.value, prev_time.isoformat(),
                    )
                    return True
            self._recent[symbol] = (timestamp, direction)
            return False

    def reset(self) -> None:
        """Forget every tracked signal and per-symbol lock (e.g. each trading day)."""
        with self._registry_lock:
            self._recent.clear()
            self._locks.clear()
        logger.debug("Conflict tracker reset")

    # ── Queries ──────────────────────────────────────────────────────────

    def last_signal(self, symbol: str) -> Optional[tuple[datetime, Direction]]:
        """Most recent non-conflicting ``(timestamp, direction)`` for *symbol*."""
        return self._recent.get(symbol)

    @property
    def tracked_symbols(self) -> list[str]:
        return sorted(self._recent)
