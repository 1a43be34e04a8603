"""
Batched, retry-safe persistence of post evaluations.

Flow:
1. Project each evaluation onto the allow-listed columns
2. Write in fixed-size batches (bulk update by id), in submission order
3. On failure, retry the whole operation with linear backoff
4. If every attempt fails, write row by row to maximise partial success
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.post_evaluation import PostEvaluation
from src.models.posts import Post
from src.utils.logging import get_logger
from src.utils.metrics import record_persistence_fallback

logger = get_logger(__name__)

@dataclass
class PersistResult:
    succeeded_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    update_success: bool = True
    used_fallback: bool = False
    attempts: int = 0
    batches_written: int = 0

class PersistenceBatcher:
    """Writes evaluation diffs to the posts table."""

    def __init__(
        self,
        db: Session,
        batch_size: int = 100,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
        history_limit: int = 365,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.db = db
        self.batch_size = max(1, batch_size)
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self.history_limit = history_limit
        self._sleep = sleep

    @classmethod
    def from_config(cls, db: Session, config) -> "PersistenceBatcher":
        return cls(
            db,
            batch_size=config.persist_batch_size,
            max_retries=config.persist_max_retries,
            backoff_seconds=config.persist_backoff_seconds,
            history_limit=config.price_history_max_checks,
        )

    def build_records(self, evaluations: List[PostEvaluation]) -> List[Dict]:
        return [evaluation.to_record(self.history_limit) for evaluation in evaluations]

    def persist(self, evaluations: List[PostEvaluation]) -> PersistResult:
        """
        Persist evaluations.

        Returns:
            PersistResult; update_success is True only when the batched
            path succeeded or every individual fallback write succeeded
        """
        result = PersistResult()
        records = self.build_records(evaluations)
        if not records:
            return result

        total_attempts = self.max_retries + 1
        for attempt in range(1, total_attempts + 1):
            result.attempts = attempt
            try:
                result.batches_written = self._write_all_batches(records)
                result.succeeded_ids = [record['id'] for record in records]
                logger.info(
                    "Posts persisted",
                    posts=len(records),
                    batches=result.batches_written,
                    attempt=attempt
                )
                return result
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"Batch update failed (attempt {attempt}/{total_attempts}): {e}")
                if attempt < total_attempts:
                    self._sleep(self.backoff_seconds * attempt)

        logger.error("Batch updates exhausted, falling back to individual updates", posts=len(records))
        record_persistence_fallback()
        result.used_fallback = True

        for record in records:
            if self._write_one(record):
                result.succeeded_ids.append(record['id'])
            else:
                result.failed_ids.append(record['id'])

        result.update_success = not result.failed_ids
        return result

    def _write_all_batches(self, records: List[Dict]) -> int:
        batches = 0
        for start in range(0, len(records), self.batch_size):
            self._write_batch(records[start:start + self.batch_size])
            batches += 1
        return batches

    def _write_batch(self, batch: List[Dict]) -> None:
        self.db.execute(update(Post), batch)
        self.db.commit()

    def _write_one(self, record: Dict) -> bool:
        values = {key: value for key, value in record.items() if key != 'id'}
        try:
            outcome = self.db.execute(
                update(Post).where(Post.id == record['id']).values(**values)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Individual update failed for post {record['id']}: {e}")
            return False

        if outcome.rowcount == 0:
            logger.error("Individual update matched no post", post_id=record['id'])
            return False
        return True
