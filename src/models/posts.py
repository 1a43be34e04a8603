"""Post (stock call) database model."""
from sqlalchemy import Column, String, Numeric, TIMESTAMP, Integer, Boolean, JSON, Index
from sqlalchemy.sql import func
from src.models.base import Base

def _price():
    return Column(Numeric(15, 4, asdecimal=False))

class Post(Base):
    """
    A user's stock call: symbol with a target and a stop-loss price.

    Created by post authoring; the evaluation engine only updates the
    evaluation state columns and moves `closed` towards True.
    """
    __tablename__ = 'posts'
    __table_args__ = (
        Index('ix_posts_user_closed', 'user_id', 'closed'),
    )

    # Primary key
    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)

    # Call details (fixed at creation)
    symbol = Column(String(32), nullable=False, index=True)
    company_name = Column(String(255))
    exchange = Column(String(16))
    country = Column(String(64))
    content = Column(String)
    strategy = Column(String(64))
    target_price = _price()
    stop_loss_price = _price()
    initial_price = _price()

    # Evaluation state
    current_price = _price()
    last_price = _price()
    high_price = _price()
    target_high_price = _price()
    target_reached = Column(Boolean, default=False)
    stop_loss_triggered = Column(Boolean, default=False)
    target_reached_date = Column(String(32))
    target_hit_time = Column(String(16))
    stop_loss_triggered_date = Column(String(32))
    closed = Column(Boolean, index=True)
    closed_date = Column(TIMESTAMP)
    last_price_check = Column(TIMESTAMP, index=True)
    status_message = Column(String(255))
    price_checks = Column(Integer, default=0)

    # Data validity flags
    post_date_after_price_date = Column(Boolean, default=False)
    post_after_market_close = Column(Boolean, default=False)
    no_data_available = Column(Boolean, default=False)

    # Bounded daily OHLC history, oldest first
    price_history = Column(JSON)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Post(id='{self.id}', symbol='{self.symbol}', closed={self.closed})>"
