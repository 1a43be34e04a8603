"""Application settings and configuration management."""
from pydantic_settings import BaseSettings
from functools import lru_cache
import yaml
from pathlib import Path

class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./stock_calls.db"

    # Redis
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Auth service (session resolution)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # Pricing provider
    EOD_BASE_URL: str = "https://eodhd.com/api"
    EOD_API_KEY: str = ""
    PRICE_API_TIMEOUT_SECONDS: float = 12.0
    FETCH_MAX_WORKERS: int = 1

    # Evaluation engine
    MAX_DAILY_CHECKS: int = 100
    PERSIST_BATCH_SIZE: int = 100
    PERSIST_MAX_RETRIES: int = 2
    PERSIST_BACKOFF_SECONDS: float = 1.0
    PRICE_HISTORY_MAX_CHECKS: int = 365
    MARKET_CLOSE_HOUR: int = 16
    MARKET_TIMEZONE: str = "UTC"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Environment
    ENV: str = "development"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

@lru_cache()
def get_market_hours_config() -> dict:
    """Load per-exchange market close hours from YAML."""
    config_path = Path(__file__).parent / "market_hours.yaml"
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}
