"""
Data validity classification.

Daily bars are end-of-day aggregates. A post created after the latest bar,
or on the latest bar's date after market close, cannot be compared against
that data yet; the post stays open and is retried on a later run.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List
from zoneinfo import ZoneInfo

from src.data.market_data import PriceBar, sort_bars
from src.models.posts import Post

class Validity(str, Enum):
    USABLE = 'USABLE'
    POST_AFTER_PRICE_DATE = 'POST_AFTER_PRICE_DATE'
    POST_AFTER_MARKET_CLOSE = 'POST_AFTER_MARKET_CLOSE'

STATUS_MESSAGES = {
    Validity.POST_AFTER_PRICE_DATE: 'Post was created after the latest available price date; waiting for newer price data',
    Validity.POST_AFTER_MARKET_CLOSE: 'Post was created after market close; waiting for the next trading session',
}

def to_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)

def validity_flags(validity: Validity) -> Dict[str, bool]:
    """Post flag columns for a classification; exactly one is set when not usable."""
    return {
        'post_date_after_price_date': validity == Validity.POST_AFTER_PRICE_DATE,
        'post_after_market_close': validity == Validity.POST_AFTER_MARKET_CLOSE,
        'no_data_available': False,
    }

class DataValidityClassifier:
    """Decides whether a fetched series can be compared against a post."""

    def __init__(self, market_close_hour: int = 16, market_timezone: str = 'UTC',
                 exchange_close_hours: Dict[str, int] = None):
        self.market_close_hour = market_close_hour
        self.market_timezone = ZoneInfo(market_timezone)
        self.exchange_close_hours = {
            code.upper(): hour for code, hour in (exchange_close_hours or {}).items()
        }

    @classmethod
    def from_config(cls, config) -> "DataValidityClassifier":
        return cls(
            market_close_hour=config.market_close_hour,
            market_timezone=config.market_timezone,
            exchange_close_hours=config.exchange_close_hours,
        )

    def close_hour_for(self, exchange: str = None) -> int:
        if exchange:
            return self.exchange_close_hours.get(exchange.upper(), self.market_close_hour)
        return self.market_close_hour

    def classify(self, post: Post, bars: List[PriceBar]) -> Validity:
        """
        Classify a series for a post.

        Args:
            post: Post being evaluated (uses created_at and exchange)
            bars: Non-empty daily series

        Returns:
            Validity classification
        """
        if not bars:
            raise ValueError("Cannot classify an empty price series")

        last_price_date = sort_bars(bars)[-1].day
        created_at = to_utc(post.created_at)
        post_date = created_at.date()

        if post_date > last_price_date:
            return Validity.POST_AFTER_PRICE_DATE

        if post_date == last_price_date:
            local_hour = created_at.astimezone(self.market_timezone).hour
            if local_hour >= self.close_hour_for(post.exchange):
                return Validity.POST_AFTER_MARKET_CLOSE

        return Validity.USABLE
