"""
Celery background tasks.
"""
from celery import Task
from sqlalchemy import or_
from src.scheduler.celery_app import app
from src.models.base import SessionLocal
from src.models.posts import Post
from src.core.engine_config import EngineConfig, validate_runtime_configuration
from src.core.price_check_runner import PriceCheckRunner
from src.core.quota_gate import QuotaExceededError
from src.data.market_data import build_market_data_fetcher
from config.settings import get_settings
from src.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseTask(Task):
    """Base task with database session management."""
    _db = None

    @property
    def db(self):
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


def users_with_open_posts(db):
    """Distinct owners of posts that are not closed yet."""
    rows = db.query(Post.user_id).filter(
        or_(Post.closed.is_(None), Post.closed.is_(False))
    ).distinct().all()
    return sorted(row[0] for row in rows if row[0])


def run_for_users(db, runner, user_ids):
    """
    Run the price check for each user; one user's failure never stops the rest.

    Returns:
        Dict with counts of checked, skipped (quota) and failed users
    """
    summary = {"users": len(user_ids), "checked": 0, "skipped": 0, "failed": 0, "closed_posts": 0}

    for user_id in user_ids:
        try:
            result = runner.run(user_id)
        except QuotaExceededError as e:
            logger.info("Skipping user: daily quota reached", user_id=user_id, used=e.used_count)
            summary["skipped"] += 1
            continue
        except Exception as e:
            db.rollback()
            logger.error(f"Scheduled price check failed for {user_id}: {e}", exc_info=True)
            summary["failed"] += 1
            continue

        summary["checked"] += 1
        summary["closed_posts"] += sum(1 for row in result.results if row.get('closed'))

    return summary


@app.task(base=DatabaseTask, bind=True)
def check_open_posts_daily(self):
    """
    Daily task: Evaluate the open posts of every user.
    Runs at 10 PM UTC. Each user run consumes one check of that user's daily quota.
    """
    logger.info("Starting scheduled price check")

    settings = get_settings()
    validate_runtime_configuration(settings)

    db = self.db
    config = EngineConfig.from_settings(settings)
    runner = PriceCheckRunner(db, config, build_market_data_fetcher(config))

    user_ids = users_with_open_posts(db)
    summary = run_for_users(db, runner, user_ids)

    logger.info("Scheduled price check complete", **summary)
    return summary
