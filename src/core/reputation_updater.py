"""Trader reputation counters updated when posts close."""
from dataclasses import dataclass
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.post_evaluation import PostEvaluation
from src.models.profiles import Profile
from src.utils.logging import get_logger

logger = get_logger(__name__)

@dataclass
class ReputationUpdate:
    updated: bool = False
    successful_delta: int = 0
    lost_delta: int = 0

class ReputationUpdater:
    """
    Adds this run's newly closed posts to the user's success/loss totals.

    Read-modify-write without locking: concurrent runs for the same user
    can lose an increment.
    """

    def __init__(self, db: Session):
        self.db = db

    def apply(self, user_id: str, evaluations: List[PostEvaluation],
              persisted_ids: Iterable[str]) -> ReputationUpdate:
        """
        Args:
            user_id: Owner of the posts
            evaluations: All evaluations of the run
            persisted_ids: Ids whose write succeeded; only these count

        Returns:
            ReputationUpdate (updated=False when nothing changed or on error)
        """
        persisted = set(persisted_ids)
        closed_now = [e for e in evaluations if e.newly_closed and e.post_id in persisted]

        successful = sum(1 for e in closed_now if e.target_reached)
        lost = sum(1 for e in closed_now if e.stop_loss_triggered)
        outcome = ReputationUpdate(successful_delta=successful, lost_delta=lost)

        if successful == 0 and lost == 0:
            return outcome

        try:
            profile = self.db.query(Profile).filter(Profile.id == user_id).first()
            if profile is None:
                logger.warning("No profile to update reputation", user_id=user_id)
                return outcome

            profile.success_posts = (profile.success_posts or 0) + successful
            profile.loss_posts = (profile.loss_posts or 0) + lost
            profile.experience_score = profile.success_posts - profile.loss_posts
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update reputation for {user_id}: {e}")
            return outcome

        logger.info(
            "Reputation updated",
            user_id=user_id,
            successful=successful,
            lost=lost,
            experience_score=profile.experience_score
        )
        outcome.updated = True
        return outcome
