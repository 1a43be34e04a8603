"""
Daily price check quota.

One run (covering all of a user's open posts) consumes one check. The
read-then-increment is not atomic, so two simultaneous runs for the same
user can both pass at the boundary; enforcement is best effort.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.price_check_usage import PriceCheckUsage
from src.utils.clock import utcnow
from src.utils.logging import get_logger

logger = get_logger(__name__)

@dataclass
class QuotaDecision:
    allowed: bool
    used_count: int
    remaining: int

class QuotaExceededError(Exception):
    """The user has used every price check for today."""

    def __init__(self, used_count: int, max_daily_checks: int):
        super().__init__(f"Daily price check limit reached ({used_count}/{max_daily_checks})")
        self.used_count = used_count
        self.max_daily_checks = max_daily_checks

class QuotaGate:
    """Per-user daily cap on price check runs."""

    def __init__(self, db: Session, max_daily_checks: int = 100):
        self.db = db
        self.max_daily_checks = max_daily_checks

    def _get_row(self, user_id: str, today: date) -> Optional[PriceCheckUsage]:
        return self.db.query(PriceCheckUsage).filter(
            PriceCheckUsage.user_id == user_id,
            PriceCheckUsage.check_date == today
        ).first()

    def check_and_increment(self, user_id: str, today: date) -> QuotaDecision:
        """
        Consume one check for (user_id, today) if any remain.

        Returns:
            QuotaDecision; allowed=False means the run must be rejected
        """
        try:
            usage = self._get_row(user_id, today)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to read price check usage for {user_id}: {e}")
            return QuotaDecision(allowed=True, used_count=0, remaining=self.max_daily_checks)

        current = usage.count if usage else 0
        if current >= self.max_daily_checks:
            logger.info("Daily price check quota exhausted", user_id=user_id, count=current)
            return QuotaDecision(allowed=False, used_count=current, remaining=0)

        used = current + 1
        try:
            if usage:
                usage.count = used
                usage.last_check = utcnow()
            else:
                self.db.add(PriceCheckUsage(user_id=user_id, check_date=today, count=1))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record price check usage for {user_id}: {e}")

        return QuotaDecision(allowed=True, used_count=used, remaining=self.max_daily_checks - used)

    def usage(self, user_id: str, today: date) -> int:
        """Checks used today (0 when unknown)."""
        try:
            usage = self._get_row(user_id, today)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to read price check usage for {user_id}: {e}")
            return 0
        return usage.count if usage else 0
