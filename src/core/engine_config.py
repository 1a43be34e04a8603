"""
Evaluation engine configuration.

Tunables are resolved once from settings (environment) and the market hours
YAML, then passed explicitly to the engine components.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional
from config.settings import Settings, get_settings, get_market_hours_config

class EngineConfigurationError(RuntimeError):
    """A required credential or endpoint is missing; the run cannot start."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code

@dataclass(frozen=True)
class EngineConfig:
    """Per-run engine tunables with their defaults."""
    max_daily_checks: int = 100
    price_api_base_url: str = "https://eodhd.com/api"
    price_api_key: str = ""
    price_api_timeout_seconds: float = 12.0
    fetch_max_workers: int = 1
    persist_batch_size: int = 100
    persist_max_retries: int = 2
    persist_backoff_seconds: float = 1.0
    price_history_max_checks: int = 365
    market_close_hour: int = 16
    market_timezone: str = "UTC"
    exchange_close_hours: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None,
                      market_hours: Optional[dict] = None) -> "EngineConfig":
        settings = settings or get_settings()
        market_hours = market_hours if market_hours is not None else get_market_hours_config()

        default_close = market_hours.get('default_close_hour')
        if default_close is None:
            default_close = settings.MARKET_CLOSE_HOUR

        exchanges = {
            str(code).upper(): int(hour)
            for code, hour in (market_hours.get('exchanges') or {}).items()
        }

        return cls(
            max_daily_checks=settings.MAX_DAILY_CHECKS,
            price_api_base_url=settings.EOD_BASE_URL,
            price_api_key=settings.EOD_API_KEY,
            price_api_timeout_seconds=settings.PRICE_API_TIMEOUT_SECONDS,
            fetch_max_workers=max(1, settings.FETCH_MAX_WORKERS),
            persist_batch_size=max(1, settings.PERSIST_BATCH_SIZE),
            persist_max_retries=max(0, settings.PERSIST_MAX_RETRIES),
            persist_backoff_seconds=max(0.0, settings.PERSIST_BACKOFF_SECONDS),
            price_history_max_checks=max(1, settings.PRICE_HISTORY_MAX_CHECKS),
            market_close_hour=int(default_close),
            market_timezone=settings.MARKET_TIMEZONE,
            exchange_close_hours=exchanges,
        )

def validate_runtime_configuration(settings: Settings) -> None:
    """
    Reject a run before any post is touched when the service is not configured.

    Raises:
        EngineConfigurationError: 503 when the database or the pricing
            provider is not configured, 500 when the pricing API key is missing.
    """
    if not settings.DATABASE_URL:
        raise EngineConfigurationError("Database is not configured", status_code=503)
    if not settings.EOD_BASE_URL:
        raise EngineConfigurationError("Pricing provider is not configured", status_code=503)
    if not settings.EOD_API_KEY:
        raise EngineConfigurationError("Pricing API key is missing", status_code=500)
