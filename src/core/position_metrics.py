"""Display metrics derived from a scanned price series."""
from dataclasses import dataclass
from typing import List, Optional

from src.core.target_scanner import ScanResult
from src.data.market_data import PriceBar, sort_bars

@dataclass
class PositionMetrics:
    current_price: float
    high_price: float
    percent_to_target: str
    percent_to_stop_loss: float
    should_close: bool
    should_update: bool

def percent_to_target(current_price: float, target_price: float,
                      initial_price: Optional[float] = None) -> str:
    """
    Distance to target as a positive percentage of the current price.

    The call direction comes from the price recorded at creation; without
    one, a target above the current price is treated as an upward call.
    """
    if target_price == current_price or not current_price:
        return "0.00"

    reference = initial_price if initial_price else current_price
    if target_price > reference:
        distance = (target_price - current_price) / current_price * 100
    else:
        distance = (current_price - target_price) / current_price * 100
    return f"{abs(distance):.2f}"

def percent_to_stop_loss(current_price: float, stop_loss_price: float,
                         stop_loss_triggered: bool) -> float:
    if stop_loss_triggered or not current_price or stop_loss_price >= current_price:
        return 0
    return round((current_price - stop_loss_price) / current_price * 100, 2)

def calculate_position_metrics(
    bars: List[PriceBar],
    scan: ScanResult,
    target_price: float,
    stop_loss_price: float,
    initial_price: Optional[float] = None,
    previous_price: Optional[float] = None
) -> PositionMetrics:
    """
    Compute display metrics and the close/update decision.

    Args:
        bars: Non-empty daily series
        scan: Scanner output for the same series
        target_price: Post target
        stop_loss_price: Post stop-loss
        initial_price: Price recorded when the post was created
        previous_price: Price written by the previous evaluation

    Returns:
        PositionMetrics
    """
    ordered = sort_bars(bars)
    current_price = ordered[-1].close
    high_price = max(bar.high for bar in ordered)

    should_close = scan.resolved
    should_update = should_close or previous_price is None or current_price != previous_price

    return PositionMetrics(
        current_price=current_price,
        high_price=high_price,
        percent_to_target=percent_to_target(current_price, target_price, initial_price),
        percent_to_stop_loss=percent_to_stop_loss(current_price, stop_loss_price, scan.stop_loss_triggered),
        should_close=should_close,
        should_update=should_update,
    )
