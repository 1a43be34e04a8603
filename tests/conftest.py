# tests/conftest.py
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.base import Base
from src.models.posts import Post
from src.models.profiles import Profile
from src.models.price_check_usage import PriceCheckUsage  # noqa: F401 (registers the table)
from src.core.engine_config import EngineConfig
from src.data.market_data import FetchResult, SOURCE_API, SOURCE_NO_DATA


class StubFetcher:
    """Serves canned series per symbol and records every fetch."""

    def __init__(self):
        self.series = {}
        self.calls = []

    def fetch(self, symbol, exchange, from_date, to_date, fallback_price=None):
        self.calls.append({'symbol': symbol, 'from': from_date, 'to': to_date, 'fallback_price': fallback_price})
        canned = self.series.get(symbol)
        if isinstance(canned, FetchResult):
            return canned
        if canned:
            return FetchResult(symbol=symbol, bars=list(canned), source=SOURCE_API,
                               api_call={'symbol': symbol, 'bars': len(canned), 'source': SOURCE_API})
        return FetchResult(symbol=symbol, bars=[], source=SOURCE_NO_DATA,
                           api_call={'symbol': symbol, 'bars': 0, 'source': SOURCE_NO_DATA})


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def config():
    return EngineConfig(price_api_key='test-key', persist_backoff_seconds=0)


@pytest.fixture
def stub_fetcher():
    return StubFetcher()


@pytest.fixture
def make_post(db):
    def _make(post_id='post-1', user_id='user-1', symbol='AAPL', target_price=110.0,
              stop_loss_price=90.0, created_at=datetime(2024, 1, 1, 10, 0), **fields):
        post = Post(
            id=post_id,
            user_id=user_id,
            symbol=symbol,
            target_price=target_price,
            stop_loss_price=stop_loss_price,
            created_at=created_at,
            **fields
        )
        db.add(post)
        db.commit()
        return post
    return _make


@pytest.fixture
def make_profile(db):
    def _make(user_id='user-1', success_posts=0, loss_posts=0):
        profile = Profile(
            id=user_id,
            username=user_id,
            success_posts=success_posts,
            loss_posts=loss_posts,
            experience_score=success_posts - loss_posts,
        )
        db.add(profile)
        db.commit()
        return profile
    return _make
