"""
Market Data Integration

Fetches daily OHLC bars for a post's symbol from the EOD Historical Data
API. Any provider failure degrades to a synthetic one-bar series built from
the post's last stored price, so an outage means "no new information"
rather than corrupted evaluation state.
"""
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

import requests

from src.utils.logging import get_logger
from src.utils.metrics import record_price_fetch

logger = get_logger(__name__)

SOURCE_API = 'api'
SOURCE_FALLBACK = 'fallback'
SOURCE_NO_DATA = 'no_data'

@dataclass
class PriceBar:
    """One daily OHLC point. `date` is ISO and may carry a time component."""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def day(self) -> date:
        return parse_bar_day(self.date)

    @property
    def time_of_day(self) -> Optional[str]:
        """HH:MM:SS when the date field carries a time component."""
        raw = str(self.date).strip()
        if len(raw) <= 10:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        except ValueError:
            return None
        return parsed.strftime('%H:%M:%S')

    def to_dict(self) -> Dict:
        return {
            'date': self.date,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
        }

def parse_bar_day(value: str) -> date:
    """Calendar day of a bar date string (`2024-01-02` or an ISO timestamp)."""
    return date.fromisoformat(str(value).strip()[:10])

def sort_bars(bars: List[PriceBar]) -> List[PriceBar]:
    """Bars ordered by date ascending."""
    return sorted(bars, key=lambda bar: str(bar.date))

@dataclass
class FetchResult:
    """Outcome of one fetch: the series, where it came from, and the call log entry."""
    symbol: str
    bars: List[PriceBar] = field(default_factory=list)
    source: str = SOURCE_API
    api_call: Dict = field(default_factory=dict)

    @property
    def no_data(self) -> bool:
        return self.source == SOURCE_NO_DATA

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK

def qualified_symbol(symbol: str, exchange: Optional[str] = None) -> str:
    """`SYMBOL.EXCHANGE` when an exchange suffix is present."""
    symbol = (symbol or '').strip().upper()
    exchange = (exchange or '').strip().upper()
    return f"{symbol}.{exchange}" if exchange else symbol

def _to_float(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number

def parse_bars(payload) -> List[PriceBar]:
    """
    Convert the provider's JSON array into PriceBar objects.

    Rows without a date or with a non-numeric open/high/low/close are dropped.
    """
    if not isinstance(payload, list):
        return []

    bars = []
    for row in payload:
        if not isinstance(row, dict) or not row.get('date'):
            continue
        values = [_to_float(row.get(key)) for key in ('open', 'high', 'low', 'close')]
        if any(value is None for value in values):
            continue
        try:
            parse_bar_day(row['date'])
        except ValueError:
            continue
        open_, high, low, close = values
        bars.append(PriceBar(
            date=str(row['date']),
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=_to_float(row.get('volume')) or 0.0,
        ))
    return sort_bars(bars)

class MarketDataFetcher:
    """
    Fetch historical daily bars from the EOD Historical Data API.

    Without an injected session each calling thread gets its own
    requests.Session, so one fetcher can serve a fetch pool. An injected
    session is shared by every thread and must tolerate that.
    """

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 12.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._shared_session = session
        if session is not None:
            session.headers.update({'Accept': 'application/json'})
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Injected session, or the calling thread's own session."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            session.headers.update({'Accept': 'application/json'})
            self._local.session = session
        return session

    def fetch(
        self,
        symbol: str,
        exchange: Optional[str],
        from_date: date,
        to_date: date,
        fallback_price: Optional[float] = None
    ) -> FetchResult:
        """
        Fetch daily bars for [from_date, to_date].

        Args:
            symbol: Ticker as stored on the post
            exchange: Optional exchange suffix
            from_date: Creation date of the post (used literally)
            to_date: Evaluation reference date
            fallback_price: Last stored price, used when the provider fails

        Returns:
            FetchResult with source 'api', 'fallback' or 'no_data'
        """
        ticker = qualified_symbol(symbol, exchange)
        url = f"{self.base_url}/eod/{ticker}"
        params = {
            'from': from_date.isoformat(),
            'to': to_date.isoformat(),
            'period': 'd',
            'fmt': 'json',
        }
        api_call = {
            'symbol': ticker,
            'url': url,
            'from': params['from'],
            'to': params['to'],
            'status': None,
            'bars': 0,
            'source': SOURCE_API,
            'error': None,
        }

        started = time.monotonic()
        bars: List[PriceBar] = []
        try:
            response = self.session.get(
                url,
                params={**params, 'api_token': self.api_key},
                timeout=self.timeout_seconds
            )
            api_call['status'] = response.status_code

            if 200 <= response.status_code < 300:
                try:
                    bars = parse_bars(response.json())
                except ValueError as e:
                    api_call['error'] = f"Malformed response body: {e}"
                else:
                    if not bars:
                        api_call['error'] = 'Empty price series'
            else:
                api_call['error'] = f"HTTP {response.status_code}: {response.reason}"

        except requests.Timeout:
            api_call['error'] = f"Timed out after {self.timeout_seconds}s"
        except requests.RequestException as e:
            api_call['error'] = f"Request failed: {e}"

        elapsed = time.monotonic() - started
        api_call['duration_ms'] = int(elapsed * 1000)

        if bars:
            api_call['bars'] = len(bars)
            record_price_fetch(SOURCE_API, elapsed)
            logger.debug("Fetched price series", symbol=ticker, bars=len(bars))
            return FetchResult(symbol=ticker, bars=bars, source=SOURCE_API, api_call=api_call)

        logger.warning(f"Failed to get price series for {ticker}: {api_call['error']}")
        return self._fallback(ticker, to_date, fallback_price, api_call, elapsed)

    def _fallback(self, ticker: str, as_of: date, fallback_price: Optional[float],
                  api_call: Dict, elapsed: float) -> FetchResult:
        price = _to_float(fallback_price)
        if price is None:
            api_call['source'] = SOURCE_NO_DATA
            record_price_fetch(SOURCE_NO_DATA, elapsed)
            logger.warning("No stored price to fall back on", symbol=ticker)
            return FetchResult(symbol=ticker, bars=[], source=SOURCE_NO_DATA, api_call=api_call)

        api_call['source'] = SOURCE_FALLBACK
        api_call['bars'] = 1
        record_price_fetch(SOURCE_FALLBACK, elapsed)
        logger.info("Using stored price as fallback", symbol=ticker, price=price)
        bar = PriceBar(date=as_of.isoformat(), open=price, high=price, low=price, close=price, volume=0)
        return FetchResult(symbol=ticker, bars=[bar], source=SOURCE_FALLBACK, api_call=api_call)

def build_market_data_fetcher(config) -> MarketDataFetcher:
    """Construct the fetcher from an EngineConfig."""
    return MarketDataFetcher(
        base_url=config.price_api_base_url,
        api_key=config.price_api_key,
        timeout_seconds=config.price_api_timeout_seconds,
    )
