from datetime import datetime

from src.core.price_check_history import PriceCheckHistory

NOW = datetime(2024, 2, 1, 12, 0)


def test_groups_posts_by_check_and_lists_closes(db, make_post):
    check = datetime(2024, 1, 30, 22, 0)
    make_post('post-1', last_price_check=check, price_checks=3, current_price=105.0)
    make_post('post-2', symbol='MSFT', last_price_check=check, price_checks=1,
              target_reached=True, closed=True, closed_date=check)
    make_post('post-3', symbol='TSLA', last_price_check=datetime(2023, 12, 1), price_checks=1)

    activities = PriceCheckHistory(db, now=lambda: NOW).activities('user-1')

    assert [item['type'] for item in activities] == ['price-check', 'closed-post']
    price_check = activities[0]
    assert price_check['checkedPosts'] == 2
    assert price_check['updatedPosts'] == 2
    assert price_check['targetReached'] == 1
    assert price_check['canSendTelegram'] is True
    assert price_check['telegramEligiblePosts'] == 1
    assert {post['symbol'] for post in price_check['posts']} == {'AAPL', 'MSFT'}

    closed = activities[1]
    assert closed['id'] == 'post_closed_post-2'
    assert closed['title'] == 'Post Closed - MSFT'


def test_window_and_owner_filter(db, make_post):
    make_post('post-1', user_id='user-2', last_price_check=datetime(2024, 1, 31))
    make_post('post-2', last_price_check=datetime(2024, 1, 10))

    history = PriceCheckHistory(db, now=lambda: NOW)

    assert history.activities('user-1', days=7) == []
    assert len(history.activities('user-1', days=30)) == 1


def test_newest_first(db, make_post):
    make_post('post-1', last_price_check=datetime(2024, 1, 20), price_checks=1)
    make_post('post-2', symbol='MSFT', last_price_check=datetime(2024, 1, 25), price_checks=1)

    activities = PriceCheckHistory(db, now=lambda: NOW).activities('user-1')

    assert [item['timestamp'] for item in activities] == ['2024-01-25T00:00:00', '2024-01-20T00:00:00']
    assert activities[0]['canSendTelegram'] is False
