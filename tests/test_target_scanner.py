from src.core.target_scanner import scan_for_target_and_stop
from src.data.market_data import PriceBar


def _bar(day, high, low, close=None, open_=None):
    close = close if close is not None else (high + low) / 2
    return PriceBar(date=day, open=open_ if open_ is not None else close, high=high, low=low, close=close)


def test_bar_crossing_both_levels_resolves_to_target():
    scan = scan_for_target_and_stop([_bar('2024-01-02', high=120, low=80)], 110, 90)

    assert scan.target_reached is True
    assert scan.stop_loss_triggered is False
    assert scan.target_reached_date == '2024-01-02'


def test_first_bar_reaching_target_sets_date_and_high():
    bars = [
        _bar('2024-01-01', high=9, low=8),
        _bar('2024-01-02', high=11, low=9),
        _bar('2024-01-03', high=15, low=12),
    ]
    scan = scan_for_target_and_stop(bars, 10, 5)

    assert scan.target_reached_date == '2024-01-02'
    assert scan.high_price_at_target == 11


def test_bars_are_scanned_in_date_order():
    bars = [
        _bar('2024-01-03', high=15, low=12),
        _bar('2024-01-02', high=11, low=9),
    ]
    scan = scan_for_target_and_stop(bars, 10, 5)

    assert scan.target_reached_date == '2024-01-02'


def test_stop_loss_only():
    bars = [
        _bar('2024-01-02', high=100, low=95),
        _bar('2024-01-03', high=96, low=88),
        _bar('2024-01-04', high=90, low=85),
    ]
    scan = scan_for_target_and_stop(bars, 110, 90)

    assert scan.target_reached is False
    assert scan.stop_loss_triggered is True
    assert scan.stop_loss_triggered_date == '2024-01-03'
    assert scan.resolved


def test_later_target_overrides_earlier_stop():
    bars = [
        _bar('2024-01-02', high=95, low=85),
        _bar('2024-01-03', high=112, low=100),
    ]
    scan = scan_for_target_and_stop(bars, 110, 90)

    assert scan.target_reached is True
    assert scan.stop_loss_triggered is False
    assert scan.stop_loss_triggered_date is None
    assert scan.stop_loss_overridden is True


def test_no_stop_check_after_target():
    bars = [
        _bar('2024-01-02', high=112, low=100),
        _bar('2024-01-03', high=95, low=80),
    ]
    scan = scan_for_target_and_stop(bars, 110, 90)

    assert scan.target_reached is True
    assert scan.stop_loss_triggered is False
    assert scan.stop_loss_overridden is False


def test_untouched_levels_leave_post_open():
    scan = scan_for_target_and_stop([_bar('2024-01-02', high=105, low=95)], 110, 90)

    assert not scan.resolved
    assert scan.target_reached_date is None
    assert scan.stop_loss_triggered_date is None


def test_hit_time_taken_from_timestamped_bar():
    bars = [_bar('2024-01-02T14:30:00', high=111, low=100)]
    scan = scan_for_target_and_stop(bars, 110, 90)

    assert scan.target_hit_time == '14:30:00'


def test_hit_time_absent_for_daily_bar():
    scan = scan_for_target_and_stop([_bar('2024-01-02', high=111, low=100)], 110, 90)

    assert scan.target_hit_time is None
