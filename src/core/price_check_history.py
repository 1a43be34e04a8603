"""Recent price check activity for a user, grouped for the activity feed."""
from datetime import datetime, timedelta
from typing import Callable, Dict, List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from src.core.data_validity import to_utc
from src.models.posts import Post
from src.utils.clock import utcnow
from src.utils.constants import DEFAULT_HISTORY_DAYS
from src.utils.logging import get_logger

logger = get_logger(__name__)

def _post_summary(post: Post) -> Dict:
    return {
        'id': post.id,
        'symbol': post.symbol,
        'company_name': post.company_name,
        'current_price': post.current_price,
        'target_price': post.target_price,
        'stop_loss_price': post.stop_loss_price,
        'target_reached': bool(post.target_reached),
        'stop_loss_triggered': bool(post.stop_loss_triggered),
        'closed': bool(post.closed),
        'exchange': post.exchange,
        'country': post.country,
        'status_message': post.status_message,
        'noDataAvailable': bool(post.no_data_available),
        'postAfterMarketClose': bool(post.post_after_market_close),
    }

class PriceCheckHistory:
    """Builds price-check and closed-post activities from the posts table."""

    def __init__(self, db: Session, now: Callable[[], datetime] = utcnow):
        self.db = db
        self._now = now

    def activities(self, user_id: str, days: int = DEFAULT_HISTORY_DAYS) -> List[Dict]:
        """
        Activities within the last `days` days, newest first.

        A price-check activity groups the posts written by the same check
        (same last_price_check timestamp); every post closed in the window
        also gets its own closed-post activity.
        """
        since = self._now() - timedelta(days=days)
        activities = list(self._price_check_activities(user_id, since))
        activities.extend(self._closed_post_activities(user_id, since))
        activities.sort(key=lambda item: item['timestamp'], reverse=True)

        eligible = sum(1 for item in activities if item['canSendTelegram'])
        logger.info("Price check history built", user_id=user_id, activities=len(activities), telegram_eligible=eligible)
        return activities

    def _price_check_activities(self, user_id: str, since: datetime) -> List[Dict]:
        posts = self.db.query(Post).filter(
            Post.user_id == user_id,
            Post.last_price_check >= since
        ).order_by(desc(Post.last_price_check)).all()

        grouped: Dict[str, Dict] = {}
        for post in posts:
            checked_at = post.last_price_check.isoformat()
            activity = grouped.get(checked_at)
            if activity is None:
                activity = grouped[checked_at] = {
                    'id': f"price_check_{int(to_utc(post.last_price_check).timestamp() * 1000)}",
                    'type': 'price-check',
                    'timestamp': checked_at,
                    'title': f"Price Check - {post.last_price_check.date().isoformat()}",
                    'posts': [],
                    'checkedPosts': 0,
                    'updatedPosts': 0,
                    'targetReached': 0,
                    'stopLossTriggered': 0,
                    'canSendTelegram': False,
                    'telegramEligiblePosts': 0,
                }

            activity['posts'].append(_post_summary(post))
            activity['checkedPosts'] += 1
            if post.target_reached or post.stop_loss_triggered or (post.price_checks or 0) > 0:
                activity['updatedPosts'] += 1
            if post.target_reached:
                activity['targetReached'] += 1
            if post.stop_loss_triggered:
                activity['stopLossTriggered'] += 1
            if post.target_reached or post.stop_loss_triggered:
                activity['telegramEligiblePosts'] += 1
                activity['canSendTelegram'] = True

        return list(grouped.values())

    def _closed_post_activities(self, user_id: str, since: datetime) -> List[Dict]:
        posts = self.db.query(Post).filter(
            Post.user_id == user_id,
            Post.closed.is_(True),
            Post.closed_date >= since
        ).order_by(desc(Post.closed_date)).all()

        activities = []
        for post in posts:
            resolved = bool(post.target_reached or post.stop_loss_triggered)
            activities.append({
                'id': f"post_closed_{post.id}",
                'type': 'closed-post',
                'timestamp': post.closed_date.isoformat(),
                'title': f"Post Closed - {post.symbol}",
                'posts': [_post_summary(post)],
                'checkedPosts': 1,
                'updatedPosts': 1,
                'targetReached': 1 if post.target_reached else 0,
                'stopLossTriggered': 1 if post.stop_loss_triggered else 0,
                'canSendTelegram': resolved,
                'telegramEligiblePosts': 1 if resolved else 0,
            })
        return activities
