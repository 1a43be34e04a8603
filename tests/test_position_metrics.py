from src.core.position_metrics import calculate_position_metrics, percent_to_stop_loss, percent_to_target
from src.core.target_scanner import ScanResult, scan_for_target_and_stop
from src.data.market_data import PriceBar


def test_percent_to_target_upward_call():
    assert percent_to_target(100.0, 110.0) == "10.00"


def test_percent_to_target_downward_call_uses_initial_price():
    assert percent_to_target(100.0, 90.0, initial_price=120.0) == "10.00"


def test_percent_to_target_never_negative():
    # price already beyond the target of an upward call
    assert percent_to_target(120.0, 110.0, initial_price=100.0) == "8.33"


def test_percent_to_target_at_target():
    assert percent_to_target(110.0, 110.0) == "0.00"


def test_percent_to_stop_loss():
    assert percent_to_stop_loss(100.0, 90.0, False) == 10.0
    assert percent_to_stop_loss(100.0, 90.0, True) == 0
    assert percent_to_stop_loss(85.0, 90.0, False) == 0


def test_metrics_close_on_target():
    bars = [
        PriceBar(date='2024-01-02', open=100, high=105, low=99, close=104),
        PriceBar(date='2024-01-03', open=104, high=115, low=103, close=112),
    ]
    scan = scan_for_target_and_stop(bars, 110, 90)
    metrics = calculate_position_metrics(bars, scan, 110, 90, previous_price=104)

    assert metrics.current_price == 112
    assert metrics.high_price == 115
    assert metrics.should_close is True
    assert metrics.should_update is True


def test_unchanged_price_needs_no_update():
    bars = [PriceBar(date='2024-01-02', open=100, high=101, low=99, close=100)]
    metrics = calculate_position_metrics(bars, ScanResult(), 110, 90, previous_price=100)

    assert metrics.should_close is False
    assert metrics.should_update is False


def test_first_evaluation_always_updates():
    bars = [PriceBar(date='2024-01-02', open=100, high=101, low=99, close=100)]
    metrics = calculate_position_metrics(bars, ScanResult(), 110, 90, previous_price=None)

    assert metrics.should_update is True
