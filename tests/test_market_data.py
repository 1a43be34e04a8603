import threading
from datetime import date
from unittest.mock import MagicMock

import requests

from src.core.target_scanner import scan_for_target_and_stop
from src.data.market_data import (
    MarketDataFetcher,
    SOURCE_API,
    SOURCE_FALLBACK,
    SOURCE_NO_DATA,
    parse_bars,
    qualified_symbol,
)


def _response(status_code=200, payload=None, reason='OK'):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.json.return_value = payload
    return response


def _fetcher(response=None, side_effect=None):
    session = MagicMock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = response
    return MarketDataFetcher('https://eodhd.example/api/', 'secret', timeout_seconds=3, session=session), session


def _fetch(fetcher, fallback_price=None):
    return fetcher.fetch('aapl', 'us', from_date=date(2024, 1, 1), to_date=date(2024, 1, 5),
                         fallback_price=fallback_price)


def test_qualified_symbol():
    assert qualified_symbol('aapl', 'us') == 'AAPL.US'
    assert qualified_symbol('AAPL') == 'AAPL'


def test_fetch_builds_provider_request():
    payload = [{'date': '2024-01-02', 'open': 100, 'high': 101, 'low': 99, 'close': 100.5, 'volume': 1000}]
    fetcher, session = _fetcher(_response(payload=payload))

    result = _fetch(fetcher)

    args, kwargs = session.get.call_args
    assert args[0] == 'https://eodhd.example/api/eod/AAPL.US'
    assert kwargs['params'] == {
        'from': '2024-01-01',
        'to': '2024-01-05',
        'period': 'd',
        'fmt': 'json',
        'api_token': 'secret',
    }
    assert kwargs['timeout'] == 3
    assert result.source == SOURCE_API
    assert result.bars[0].close == 100.5
    assert 'api_token' not in str(result.api_call)


def test_parse_bars_drops_bad_rows_and_sorts():
    payload = [
        {'date': '2024-01-03', 'open': 1, 'high': 2, 'low': 1, 'close': 2},
        {'date': '2024-01-02', 'open': 1, 'high': 'n/a', 'low': 1, 'close': 2},
        {'open': 1, 'high': 2, 'low': 1, 'close': 2},
        {'date': '2024-01-01', 'open': '1.5', 'high': '2', 'low': '1', 'close': '1.8'},
    ]

    bars = parse_bars(payload)

    assert [bar.date for bar in bars] == ['2024-01-01', '2024-01-03']
    assert bars[0].open == 1.5


def test_empty_series_falls_back_to_stored_price():
    fetcher, _ = _fetcher(_response(payload=[]))

    result = _fetch(fetcher, fallback_price=50)

    assert result.source == SOURCE_FALLBACK
    assert len(result.bars) == 1
    bar = result.bars[0]
    assert (bar.open, bar.high, bar.low, bar.close) == (50, 50, 50, 50)
    assert bar.date == '2024-01-05'
    assert result.api_call['error'] == 'Empty price series'

    scan = scan_for_target_and_stop(result.bars, 60, 40)
    assert not scan.resolved


def test_http_error_falls_back():
    fetcher, _ = _fetcher(_response(status_code=500, reason='Server Error'))

    result = _fetch(fetcher, fallback_price=42.0)

    assert result.is_fallback
    assert result.api_call['status'] == 500
    assert 'HTTP 500' in result.api_call['error']


def test_timeout_falls_back():
    fetcher, _ = _fetcher(side_effect=requests.Timeout())

    result = _fetch(fetcher, fallback_price=42.0)

    assert result.is_fallback
    assert result.api_call['error'].startswith('Timed out')


def test_malformed_body_falls_back():
    response = _response()
    response.json.side_effect = ValueError('not json')
    fetcher, _ = _fetcher(response)

    result = _fetch(fetcher, fallback_price=42.0)

    assert result.is_fallback
    assert 'Malformed' in result.api_call['error']


def test_no_stored_price_means_no_data():
    fetcher, _ = _fetcher(side_effect=requests.ConnectionError('down'))

    result = _fetch(fetcher, fallback_price=None)

    assert result.source == SOURCE_NO_DATA
    assert result.no_data
    assert result.bars == []


def test_each_thread_gets_its_own_session():
    fetcher = MarketDataFetcher('https://eodhd.example/api', 'secret')

    sessions = []
    barrier = threading.Barrier(2)

    def grab():
        barrier.wait()
        sessions.append(fetcher.session)

    threads = [threading.Thread(target=grab) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sessions[0] is not sessions[1]
    assert fetcher.session is fetcher.session
    assert fetcher.session.headers['Accept'] == 'application/json'


def test_injected_session_is_shared():
    session = MagicMock()
    fetcher = MarketDataFetcher('https://eodhd.example/api', 'secret', session=session)

    seen = []
    thread = threading.Thread(target=lambda: seen.append(fetcher.session))
    thread.start()
    thread.join()

    assert seen == [session]
    assert fetcher.session is session
