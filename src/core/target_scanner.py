"""
Target / stop-loss scanning over a daily price series.

Rules:
- Bars are walked oldest first; the first bar meeting a condition sets its date.
- Target is checked before stop-loss on every bar, so a bar that crosses
  both resolves to the target.
- Once the target is reached no further stop-loss check happens.
- A target reached after an earlier stop-loss trigger in the same series
  wins the final decision; the stop-loss is cleared and the override is
  reported through `stop_loss_overridden`.
"""
from dataclasses import dataclass
from typing import List, Optional

from src.data.market_data import PriceBar, sort_bars

@dataclass
class ScanResult:
    """Resolved target / stop-loss state for one series."""
    target_reached: bool = False
    target_reached_date: Optional[str] = None
    target_hit_time: Optional[str] = None
    high_price_at_target: Optional[float] = None
    stop_loss_triggered: bool = False
    stop_loss_triggered_date: Optional[str] = None
    stop_loss_overridden: bool = False

    @property
    def resolved(self) -> bool:
        return self.target_reached or self.stop_loss_triggered

def scan_for_target_and_stop(bars: List[PriceBar], target_price: float,
                             stop_loss_price: float) -> ScanResult:
    """
    Resolve the target / stop-loss state of a post against a series.

    Args:
        bars: Daily bars (sorted here by date)
        target_price: Price whose touch by a bar's high reaches the target
        stop_loss_price: Price whose touch by a bar's low triggers the stop

    Returns:
        ScanResult
    """
    result = ScanResult()

    for bar in sort_bars(bars):
        if not result.target_reached and bar.high >= target_price:
            result.target_reached = True
            result.target_reached_date = bar.date
            result.high_price_at_target = bar.high
            result.target_hit_time = bar.time_of_day
            continue

        if not result.target_reached and not result.stop_loss_triggered and bar.low <= stop_loss_price:
            result.stop_loss_triggered = True
            result.stop_loss_triggered_date = bar.date

    if result.target_reached and result.stop_loss_triggered:
        result.stop_loss_triggered = False
        result.stop_loss_triggered_date = None
        result.stop_loss_overridden = True

    return result
