"""Configuration management for the application."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from src.models.market_data import DEFAULT_COINS

# Load environment variables from .env file
load_dotenv()

DEFAULT_TRACKED_COINS = [coin.coin_id for coin in DEFAULT_COINS]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class APIConfig:
    """Market data API configuration."""

    base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    request_timeout: float = 10.0  # Transport timeout in seconds


@dataclass
class PollerConfig:
    """Price polling configuration."""

    interval_seconds: int = 120
    alert_threshold_percent: float = 5.0
    tracked_coins: list[str] = field(default_factory=lambda: list(DEFAULT_TRACKED_COINS))
    autostart: bool = False


@dataclass
class RetryConfig:
    """Rate-limit retry configuration."""

    max_retries: int = 3
    delay_seconds: float = 60.0


@dataclass
class ChartConfig:
    """Chart cache configuration."""

    freshness_seconds: int = 300


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    file_path: str | None = None
    event_store_max_size: int = 10000
    event_store_max_age_seconds: int = 3600


def _parse_coin_list(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_TRACKED_COINS)
    return [coin.strip().lower() for coin in raw.split(",") if coin.strip()]


class Config:
    """Main application configuration."""

    def __init__(self):
        self.api = APIConfig(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"),
            vs_currency=os.getenv("VS_CURRENCY", "usd"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
        )

        self.poller = PollerConfig(
            interval_seconds=int(os.getenv("POLL_INTERVAL_SECONDS", "120")),
            alert_threshold_percent=float(os.getenv("ALERT_THRESHOLD_PERCENT", "5.0")),
            tracked_coins=_parse_coin_list(os.getenv("TRACKED_COINS")),
            autostart=os.getenv("AUTOSTART_POLLING", "false").lower() == "true",
        )

        self.retry = RetryConfig(
            max_retries=int(os.getenv("RETRY_MAX_RETRIES", "3")),
            delay_seconds=float(os.getenv("RETRY_DELAY_SECONDS", "60")),
        )

        self.chart = ChartConfig(
            freshness_seconds=int(os.getenv("CHART_FRESHNESS_SECONDS", "300")),
        )

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            file_path=os.getenv("LOG_FILE") or None,
            event_store_max_size=int(os.getenv("EVENT_STORE_MAX_SIZE", "10000")),
            event_store_max_age_seconds=int(os.getenv("EVENT_STORE_MAX_AGE", "3600")),
        )

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        if self.poller.interval_seconds <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be a positive integer")
        if not 1 <= self.poller.alert_threshold_percent <= 20:
            raise ValueError("ALERT_THRESHOLD_PERCENT must be between 1 and 20")
        if not self.poller.tracked_coins:
            raise ValueError("TRACKED_COINS must name at least one coin")
        if self.chart.freshness_seconds <= 0:
            raise ValueError("CHART_FRESHNESS_SECONDS must be a positive integer")
        if self.retry.max_retries < 0:
            raise ValueError("RETRY_MAX_RETRIES cannot be negative")
        if self.retry.delay_seconds < 0:
            raise ValueError("RETRY_DELAY_SECONDS cannot be negative")
        if self.api.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {self.logging.level}")

        return True


# Global config instance
config = Config()
