"""Daily price check usage model."""
from sqlalchemy import Column, String, TIMESTAMP, Integer, Date, UniqueConstraint
from sqlalchemy.sql import func
from src.models.base import Base

class PriceCheckUsage(Base):
    """Number of price check runs a user performed on one calendar date."""
    __tablename__ = 'price_check_usage'
    __table_args__ = (
        UniqueConstraint('user_id', 'check_date', name='uq_price_check_usage_user_date'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    check_date = Column(Date, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    last_check = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<PriceCheckUsage(user_id='{self.user_id}', date={self.check_date}, count={self.count})>"
