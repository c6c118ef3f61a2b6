"""candlesignal: application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from candlesignal.feed.candle_builder import resolve_zone


_REQUIRED_VARS = [
    "TICK_TIMEZONE",
]


@dataclass(frozen=True)
class PipelineConfig:
    """Typed configuration loaded from environment variables."""

    tick_timezone: str  # IANA zone of raw tick wall-clock times
    market_timezone: str  # IANA zone of the exchange session
    log_level: str
    min_confidence: float
    min_rr_ratio: float
    max_risk_percent: float
    min_risk_amount: float
    conflict_window_minutes: float
    confluence_window_minutes: float
    confluence_price_tolerance: float
    chart_window: int

    @property
    def validity_thresholds(self) -> dict[str, float]:
        """Keyword arguments for ``is_valid_signal``."""
        return {
            "min_confidence": self.min_confidence,
            "min_rr_ratio": self.min_rr_ratio,
            "max_risk_percent": self.max_risk_percent,
            "min_risk_amount": self.min_risk_amount,
        }


def load_config(env_path: str | None = None) -> PipelineConfig:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or naming the zone when a timezone is not
    a known IANA zone.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    tick_timezone = os.environ["TICK_TIMEZONE"]
    market_timezone = os.environ.get("MARKET_TIMEZONE", "America/New_York")
    resolve_zone(tick_timezone)
    resolve_zone(market_timezone)

    return PipelineConfig(
        tick_timezone=tick_timezone,
        market_timezone=market_timezone,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        min_confidence=float(os.environ.get("MIN_CONFIDENCE", "75")),
        min_rr_ratio=float(os.environ.get("MIN_RR_RATIO", "2.0")),
        max_risk_percent=float(os.environ.get("MAX_RISK_PERCENT", "20")),
        min_risk_amount=float(os.environ.get("MIN_RISK_AMOUNT", "0.05")),
        conflict_window_minutes=float(os.environ.get("CONFLICT_WINDOW_MINUTES", "30")),
        confluence_window_minutes=float(os.environ.get("CONFLUENCE_WINDOW_MINUTES", "5")),
        confluence_price_tolerance=float(
            os.environ.get("CONFLUENCE_PRICE_TOLERANCE", "0.02")
        ),
        chart_window=int(os.environ.get("CHART_WINDOW", "30")),
    )
