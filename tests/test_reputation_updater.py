from src.core.post_evaluation import PostEvaluation
from src.core.reputation_updater import ReputationUpdater
from src.models.profiles import Profile


def _closed(post_id, target=False, stop=False):
    return PostEvaluation(
        post_id=post_id,
        user_id='user-1',
        symbol='AAPL',
        target_reached=target,
        stop_loss_triggered=stop,
        closed=True,
        newly_closed=True,
    )


def test_counts_persisted_closes(db, make_profile):
    make_profile('user-1', success_posts=2, loss_posts=1)
    evaluations = [_closed('a', target=True), _closed('b', target=True), _closed('c', stop=True)]

    update = ReputationUpdater(db).apply('user-1', evaluations, ['a', 'b', 'c'])

    assert update.updated is True
    assert (update.successful_delta, update.lost_delta) == (2, 1)
    db.expire_all()
    profile = db.get(Profile, 'user-1')
    assert (profile.success_posts, profile.loss_posts, profile.experience_score) == (4, 2, 2)


def test_failed_writes_not_counted(db, make_profile):
    make_profile('user-1')

    update = ReputationUpdater(db).apply('user-1', [_closed('a', target=True), _closed('b', stop=True)], ['b'])

    assert (update.successful_delta, update.lost_delta) == (0, 1)
    db.expire_all()
    assert db.get(Profile, 'user-1').experience_score == -1


def test_nothing_closed(db, make_profile):
    make_profile('user-1')
    evaluation = PostEvaluation(post_id='a', user_id='user-1', symbol='AAPL')

    update = ReputationUpdater(db).apply('user-1', [evaluation], ['a'])

    assert update.updated is False


def test_missing_profile(db):
    update = ReputationUpdater(db).apply('ghost', [_closed('a', target=True)], ['a'])

    assert update.updated is False
    assert update.successful_delta == 1
