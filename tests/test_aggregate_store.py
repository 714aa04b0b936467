from datetime import timedelta

import pytest

from foursigma import db
from foursigma.errors import NotFoundError, StaleAggregateError
from foursigma.models import User
from foursigma.services.aggregate_store import UserAggregateStore
from tests.conftest import NOW


@pytest.fixture
def store(ctx):
    return UserAggregateStore()


def test_update_with_stale_version_is_rejected(store, make_user):
    user = make_user()
    store.update(user.id, {"total_score": 10.0}, expected_version=0)

    with pytest.raises(StaleAggregateError):
        store.update(user.id, {"total_score": 99.0}, expected_version=0)

    fresh = store.get(user.id)
    assert fresh.total_score == 10.0
    assert fresh.version == 1


def test_apply_session_folds_in_totals(store, make_user):
    user = make_user()

    store.apply_session(user.id, 300.0, 3, 2, now=NOW)
    values = store.apply_session(user.id, 100.0, 3, 1, now=NOW)

    fresh = store.get(user.id)
    assert fresh.games_played == 2
    assert fresh.total_score == 400.0
    assert fresh.average_score == 200.0
    assert fresh.questions_answered == 6
    assert fresh.questions_captured == 3
    assert fresh.calibration_rate == pytest.approx(0.5)
    assert fresh.best_single_score == 300.0
    assert fresh.version == 2
    assert values["games_played"] == 2


def test_apply_session_tracks_streak(store, make_user):
    user = make_user()

    store.apply_session(user.id, 10.0, 3, 3, now=NOW - timedelta(days=2))
    store.apply_session(user.id, 10.0, 3, 3, now=NOW - timedelta(days=1))
    store.apply_session(user.id, 10.0, 3, 0, now=NOW)

    fresh = store.get(user.id)
    # Participation counts even with no captures
    assert fresh.current_streak == 3
    assert fresh.best_streak == 3

    store.apply_session(user.id, 10.0, 3, 3, now=NOW + timedelta(days=5))
    fresh = store.get(user.id)
    assert fresh.current_streak == 1
    assert fresh.best_streak == 3


def test_apply_session_retries_after_conflict(store, make_user, monkeypatch):
    user = make_user()
    real_update = store.update
    calls = []

    def racing_update(user_id, new_values, expected_version):
        calls.append(expected_version)
        if len(calls) == 1:
            # Another finalize lands between our read and write
            real_update(user_id, {"games_played": 5}, expected_version)
        return real_update(user_id, new_values, expected_version)

    monkeypatch.setattr(store, "update", racing_update)

    store.apply_session(user.id, 50.0, 3, 3, now=NOW)

    fresh = store.get(user.id)
    assert calls == [0, 1]
    assert fresh.games_played == 6
    assert fresh.version == 2


def test_apply_session_gives_up(store, make_user, monkeypatch):
    user = make_user()

    def always_stale(user_id, new_values, expected_version):
        raise StaleAggregateError("conflict")

    monkeypatch.setattr(store, "update", always_stale)

    with pytest.raises(StaleAggregateError):
        store.apply_session(user.id, 50.0, 3, 3, now=NOW)
    assert db.session.get(User, user.id, populate_existing=True).games_played == 0


def test_apply_session_unknown_user(store):
    with pytest.raises(NotFoundError):
        store.apply_session(12345, 50.0, 3, 3, now=NOW)


def test_display_names_and_games_played(store, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    store.apply_session(bob.id, 10.0, 3, 3, now=NOW)

    assert store.display_names([alice.id, bob.id]) == {alice.id: "Alice", bob.id: "Bob"}
    assert store.games_played([alice.id, bob.id]) == {alice.id: 0, bob.id: 1}
    assert store.display_names([]) == {}
