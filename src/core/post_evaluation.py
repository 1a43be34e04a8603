"""Per-post evaluation outcome: the diff applied to a Post plus its response row."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from src.data.market_data import PriceBar

# Only these columns are ever written by the engine.
PERSISTED_COLUMNS = (
    'current_price',
    'last_price',
    'high_price',
    'target_high_price',
    'target_reached',
    'stop_loss_triggered',
    'target_reached_date',
    'target_hit_time',
    'stop_loss_triggered_date',
    'closed',
    'closed_date',
    'last_price_check',
    'status_message',
    'post_date_after_price_date',
    'post_after_market_close',
    'no_data_available',
    'price_checks',
    'price_history',
)

@dataclass
class PostEvaluation:
    """Outcome of evaluating one post in one run."""
    post_id: str
    user_id: str
    symbol: str
    company_name: Optional[str] = None
    target_price: Optional[float] = None
    stop_loss_price: Optional[float] = None

    # New post state
    current_price: Optional[float] = None
    last_price: Optional[float] = None
    high_price: Optional[float] = None
    target_high_price: Optional[float] = None
    target_reached: bool = False
    stop_loss_triggered: bool = False
    target_reached_date: Optional[str] = None
    target_hit_time: Optional[str] = None
    stop_loss_triggered_date: Optional[str] = None
    closed: Optional[bool] = None
    closed_date: Optional[datetime] = None
    last_price_check: Optional[datetime] = None
    status_message: Optional[str] = None
    post_date_after_price_date: bool = False
    post_after_market_close: bool = False
    no_data_available: bool = False
    price_checks: int = 0

    # Series that replaces the stored history (None keeps the stored one)
    history_bars: Optional[List[PriceBar]] = None

    # Run bookkeeping
    message: Optional[str] = None
    percent_to_target: str = "0.00"
    percent_to_stop_loss: float = 0
    should_close: bool = False
    should_update: bool = False
    newly_closed: bool = False
    validity: Optional[str] = None

    def to_record(self, history_limit: int) -> Dict:
        """Project onto the allow-listed columns, keyed by post id."""
        record = {'id': self.post_id}
        for column in PERSISTED_COLUMNS:
            if column == 'price_history':
                continue
            record[column] = getattr(self, column)
        if self.history_bars is not None:
            record['price_history'] = [bar.to_dict() for bar in self.history_bars[-history_limit:]]
        return record

    def to_response(self) -> Dict:
        """Per-post entry of the run response."""
        row = {
            'id': self.post_id,
            'symbol': self.symbol,
            'companyName': self.company_name,
            'currentPrice': self.current_price,
            'targetPrice': self.target_price,
            'stopLossPrice': self.stop_loss_price,
            'targetReached': self.target_reached,
            'stopLossTriggered': self.stop_loss_triggered,
            'targetReachedDate': self.target_reached_date,
            'stopLossTriggeredDate': self.stop_loss_triggered_date,
            'closed': bool(self.should_close or self.closed),
            'percentToTarget': self.percent_to_target,
            'percentToStopLoss': self.percent_to_stop_loss,
        }
        if self.message:
            row['message'] = self.message
        if self.no_data_available:
            row['noDataAvailable'] = True
        if self.post_date_after_price_date:
            row['postDateAfterPriceDate'] = True
        if self.post_after_market_close:
            row['postAfterMarketClose'] = True
        return row
