"""User profile database model (reputation counters only)."""
from sqlalchemy import Column, String, TIMESTAMP, Integer
from sqlalchemy.sql import func
from src.models.base import Base

class Profile(Base):
    """
    Trader profile.

    Only the reputation counters are maintained here; the remaining profile
    fields belong to the social features.
    """
    __tablename__ = 'profiles'

    id = Column(String(64), primary_key=True)
    username = Column(String(64))

    # Reputation
    success_posts = Column(Integer, nullable=False, default=0)
    loss_posts = Column(Integer, nullable=False, default=0)
    experience_score = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
