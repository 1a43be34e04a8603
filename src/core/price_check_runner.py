"""
Price check run orchestration.

A run evaluates every open post of one user:
quota check -> load open posts -> per post fetch, classify, scan and
compute metrics -> persist in batches -> update reputation -> summary.

Per-post failures are recorded in that post's message and never abort the
run. Call logs and counters are returned from each stage rather than kept
in shared state.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.core.data_validity import DataValidityClassifier, STATUS_MESSAGES, Validity, to_utc, validity_flags
from src.core.engine_config import EngineConfig
from src.core.persistence_batcher import PersistenceBatcher
from src.core.position_metrics import calculate_position_metrics, percent_to_stop_loss, percent_to_target
from src.core.post_evaluation import PostEvaluation
from src.core.quota_gate import QuotaExceededError, QuotaGate
from src.core.reputation_updater import ReputationUpdater
from src.core.target_scanner import scan_for_target_and_stop
from src.data.market_data import FetchResult, MarketDataFetcher
from src.models.posts import Post
from src.utils.clock import utcnow
from src.utils.logging import get_logger
from src.utils.metrics import record_classification, record_post_closed, record_run

logger = get_logger(__name__)

MSG_MISSING_FIELDS = 'Post is missing its symbol, target or stop-loss price; skipped'
MSG_NO_DATA = 'No price data available and no stored price; post left unchanged'
MSG_FETCH_FAILED = 'Price data could not be retrieved; post left unchanged'
MSG_EVALUATION_FAILED = 'Evaluation failed; post left unchanged'
MSG_FALLBACK = 'No new price data; evaluated against the last stored price'
MSG_PRICE_UPDATED = 'Price updated'
MSG_PRICE_UNCHANGED = 'Price unchanged since the last check'

def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None

@dataclass
class PriceCheckRunResult:
    """Summary of one run, shaped for the HTTP response."""
    usage_count: int
    remaining_checks: int
    checked_posts: int = 0
    updated_posts: int = 0
    closed_posts_skipped: int = 0
    update_success: bool = True
    experience_updated: bool = False
    results: List[Dict] = field(default_factory=list)
    api_details: Optional[List[Dict]] = None

    def to_response(self) -> Dict:
        response = {
            'success': True,
            'message': 'Price check completed successfully',
            'remainingChecks': self.remaining_checks,
            'usageCount': self.usage_count,
            'checkedPosts': self.checked_posts,
            'updatedPosts': self.updated_posts,
            'closedPostsSkipped': self.closed_posts_skipped,
            'updateSuccess': self.update_success,
            'experienceUpdated': self.experience_updated,
            'results': self.results,
        }
        if self.api_details is not None:
            response['apiDetails'] = self.api_details
        return response

class PriceCheckRunner:
    """Runs the evaluation engine for one user."""

    def __init__(
        self,
        db: Session,
        config: EngineConfig,
        fetcher: MarketDataFetcher,
        batcher: Optional[PersistenceBatcher] = None,
        now: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.config = config
        self.fetcher = fetcher
        self.quota_gate = QuotaGate(db, config.max_daily_checks)
        self.classifier = DataValidityClassifier.from_config(config)
        self.batcher = batcher or PersistenceBatcher.from_config(db, config)
        self.reputation = ReputationUpdater(db)
        self._now = now

    def run(self, user_id: str, request_date: Optional[date] = None,
            include_api_details: bool = False) -> PriceCheckRunResult:
        """
        Evaluate all open posts of a user.

        Args:
            user_id: Owner of the posts
            request_date: Reference date overriding "now" for the price range
            include_api_details: Attach the per-symbol API call log

        Returns:
            PriceCheckRunResult

        Raises:
            QuotaExceededError: The daily cap is reached; nothing was evaluated
        """
        checked_at = self._now()
        today = checked_at.date()
        reference_date = request_date or today

        decision = self.quota_gate.check_and_increment(user_id, today)
        if not decision.allowed:
            record_run('quota_exceeded')
            raise QuotaExceededError(decision.used_count, self.config.max_daily_checks)

        closed_count = self.db.query(Post).filter(
            Post.user_id == user_id,
            Post.closed.is_(True)
        ).count()

        posts = self.db.query(Post).filter(
            Post.user_id == user_id,
            or_(Post.closed.is_(None), Post.closed.is_(False))
        ).order_by(Post.created_at).all()

        logger.info("Price check started", user_id=user_id, open_posts=len(posts), reference_date=reference_date.isoformat())

        evaluable = [post for post in posts if self._has_required_fields(post)]
        fetched = self._fetch_all(evaluable, reference_date)

        evaluations: List[PostEvaluation] = []
        api_details: List[Dict] = []
        for post in posts:
            if post.id not in fetched:
                evaluations.append(self._skipped(post, MSG_MISSING_FIELDS))
                continue

            fetch_result, fetch_error = fetched[post.id]
            if fetch_error:
                evaluations.append(self._skipped(post, MSG_FETCH_FAILED))
                continue

            try:
                evaluation = self.evaluate_post(post, fetch_result, checked_at)
            except Exception as e:
                logger.error(f"Error processing post {post.id}: {e}", exc_info=True)
                evaluation = self._skipped(post, MSG_EVALUATION_FAILED)
            evaluations.append(evaluation)
            api_details.append({**fetch_result.api_call, 'postId': post.id, 'validity': evaluation.validity})

        to_write = [e for e in evaluations if e.should_update]
        persist_result = self.batcher.persist(to_write)

        persisted = set(persist_result.succeeded_ids)
        for evaluation in to_write:
            if evaluation.newly_closed and evaluation.post_id in persisted:
                record_post_closed('target' if evaluation.target_reached else 'stop_loss')

        reputation = self.reputation.apply(user_id, evaluations, persist_result.succeeded_ids)

        usage_count = self.quota_gate.usage(user_id, today) or decision.used_count
        record_run('completed')

        result = PriceCheckRunResult(
            usage_count=usage_count,
            remaining_checks=max(0, self.config.max_daily_checks - usage_count),
            checked_posts=len(evaluations),
            updated_posts=len(to_write),
            closed_posts_skipped=closed_count,
            update_success=persist_result.update_success,
            experience_updated=reputation.updated,
            results=[e.to_response() for e in evaluations],
            api_details=api_details if include_api_details else None,
        )

        logger.info(
            "Price check completed",
            user_id=user_id,
            checked=result.checked_posts,
            updated=result.updated_posts,
            update_success=result.update_success,
            fallback=persist_result.used_fallback
        )
        return result

    @staticmethod
    def _has_required_fields(post: Post) -> bool:
        return bool(post.symbol) and post.target_price is not None and post.stop_loss_price is not None

    def _fetch_one(self, post: Post, reference_date: date) -> Tuple[Optional[FetchResult], Optional[str]]:
        try:
            result = self.fetcher.fetch(
                post.symbol,
                post.exchange,
                from_date=to_utc(post.created_at).date(),
                to_date=reference_date,
                fallback_price=_as_float(post.current_price)
            )
        except Exception as e:
            logger.error(f"Unexpected fetch error for post {post.id}: {e}", exc_info=True)
            return None, str(e)
        return result, None

    def _fetch_all(self, posts: List[Post], reference_date: date) -> Dict[str, Tuple[Optional[FetchResult], Optional[str]]]:
        workers = min(self.config.fetch_max_workers, len(posts))
        if workers <= 1:
            outcomes = [self._fetch_one(post, reference_date) for post in posts]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(lambda post: self._fetch_one(post, reference_date), posts))
        return {post.id: outcome for post, outcome in zip(posts, outcomes)}

    def _base_evaluation(self, post: Post) -> PostEvaluation:
        """Evaluation that leaves every column as currently stored."""
        return PostEvaluation(
            post_id=post.id,
            user_id=post.user_id,
            symbol=post.symbol,
            company_name=post.company_name,
            target_price=_as_float(post.target_price),
            stop_loss_price=_as_float(post.stop_loss_price),
            current_price=_as_float(post.current_price),
            last_price=_as_float(post.last_price),
            high_price=_as_float(post.high_price),
            target_high_price=_as_float(post.target_high_price),
            target_reached=bool(post.target_reached),
            stop_loss_triggered=bool(post.stop_loss_triggered),
            target_reached_date=post.target_reached_date,
            target_hit_time=post.target_hit_time,
            stop_loss_triggered_date=post.stop_loss_triggered_date,
            closed=post.closed,
            closed_date=post.closed_date,
            last_price_check=post.last_price_check,
            status_message=post.status_message,
            post_date_after_price_date=bool(post.post_date_after_price_date),
            post_after_market_close=bool(post.post_after_market_close),
            no_data_available=bool(post.no_data_available),
            price_checks=post.price_checks or 0,
        )

    def _skipped(self, post: Post, message: str, no_data: bool = False) -> PostEvaluation:
        evaluation = self._base_evaluation(post)
        evaluation.message = message
        if no_data:
            evaluation.no_data_available = True
        return evaluation

    def evaluate_post(self, post: Post, fetched: FetchResult, checked_at: datetime) -> PostEvaluation:
        """Evaluate one post against its fetched series."""
        if fetched.no_data:
            record_classification('NO_DATA')
            return self._skipped(post, MSG_NO_DATA, no_data=True)

        evaluation = self._base_evaluation(post)
        evaluation.last_price_check = checked_at
        evaluation.price_checks += 1
        if not fetched.is_fallback:
            evaluation.history_bars = fetched.bars

        target = evaluation.target_price
        stop = evaluation.stop_loss_price

        validity = self.classifier.classify(post, fetched.bars)
        evaluation.validity = validity.value
        record_classification(validity.value)

        if validity != Validity.USABLE:
            for column, value in validity_flags(validity).items():
                setattr(evaluation, column, value)
            evaluation.status_message = STATUS_MESSAGES[validity]
            evaluation.message = STATUS_MESSAGES[validity]
            if evaluation.current_price:
                evaluation.percent_to_target = percent_to_target(evaluation.current_price, target, _as_float(post.initial_price))
                evaluation.percent_to_stop_loss = percent_to_stop_loss(evaluation.current_price, stop, evaluation.stop_loss_triggered)
            evaluation.should_update = True
            logger.info("Post data not comparable yet", post_id=post.id, validity=validity.value)
            return evaluation

        scan = scan_for_target_and_stop(fetched.bars, target, stop)
        if scan.stop_loss_overridden:
            logger.info("Later target hit overrides earlier stop-loss trigger", post_id=post.id, symbol=post.symbol)

        metrics = calculate_position_metrics(
            fetched.bars,
            scan,
            target_price=target,
            stop_loss_price=stop,
            initial_price=_as_float(post.initial_price),
            previous_price=_as_float(post.last_price)
        )

        evaluation.current_price = metrics.current_price
        evaluation.last_price = metrics.current_price
        evaluation.high_price = max(metrics.high_price, evaluation.high_price or metrics.high_price)
        evaluation.percent_to_target = metrics.percent_to_target
        evaluation.percent_to_stop_loss = metrics.percent_to_stop_loss
        evaluation.should_close = metrics.should_close
        evaluation.should_update = metrics.should_update
        evaluation.post_date_after_price_date = False
        evaluation.post_after_market_close = False
        evaluation.no_data_available = fetched.is_fallback

        if scan.target_reached:
            evaluation.target_reached = True
            evaluation.target_reached_date = scan.target_reached_date
            evaluation.target_hit_time = scan.target_hit_time
            evaluation.target_high_price = scan.high_price_at_target
            evaluation.stop_loss_triggered = False
            evaluation.stop_loss_triggered_date = None
            evaluation.status_message = f"Target reached on {scan.target_reached_date}"
        elif scan.stop_loss_triggered:
            evaluation.stop_loss_triggered = True
            evaluation.stop_loss_triggered_date = scan.stop_loss_triggered_date
            evaluation.status_message = f"Stop loss triggered on {scan.stop_loss_triggered_date}"
        elif fetched.is_fallback:
            evaluation.status_message = MSG_FALLBACK
        else:
            evaluation.status_message = MSG_PRICE_UPDATED if metrics.should_update else MSG_PRICE_UNCHANGED

        if metrics.should_close:
            evaluation.closed = True
            evaluation.closed_date = checked_at
            evaluation.newly_closed = not post.closed

        evaluation.message = evaluation.status_message
        return evaluation
