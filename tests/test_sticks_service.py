from datetime import timedelta

import pytest

from civichub.core.exceptions import StoreReadFailure
from civichub.services.sticks_service import SticksService, UserLockRegistry
from civichub.services.user_directory import RequestCache, UserDirectory

from conftest import NOW


def test_record_post_persists_full_record(sticks_service):
    sticks_service.record_post("u1", NOW)
    sticks_service.record_post("u1", NOW + timedelta(hours=20))

    record = sticks_service.get_sticks("u1")
    assert record["points"] == 7
    assert record["current_streak"] == 2
    assert record["streak_days"] == ["2025-03-01", "2025-03-02"]
    assert "id" not in record


def test_profile_uses_points_for_progress(sticks_service):
    assert sticks_service.profile("nobody") is None

    sticks_service.record_post("u1", NOW)
    profile = sticks_service.profile("u1")
    assert profile["sticks"]["uid"] == "u1"
    assert profile["progress"] == {
        "level": 1,
        "points_into_level": 3,
        "points_to_next_level": 97,
        "progress": 0.03,
    }


def test_leaderboard_orders_by_points_with_display_names(db, sticks_service):
    db.collection("users").document("u1").set({"username": "asha", "photo_url": "https://img/asha.png"})
    db.collection("users").document("u2").set({"name": "Ravi Kumar"})
    db.collection("user_sticks").document("u1").set({"uid": "u1", "points": 120, "badge": "bronze-2", "current_streak": 2})
    db.collection("user_sticks").document("u2").set({"uid": "u2", "points": 340, "badge": "bronze-4", "current_streak": 1})
    db.collection("user_sticks").document("u3").set({"uid": "u3", "points": 15, "badge": "bronze-1", "current_streak": 4})

    board = sticks_service.leaderboard()

    assert [entry["uid"] for entry in board] == ["u2", "u1", "u3"]
    assert [entry["rank"] for entry in board] == [1, 2, 3]
    assert board[0]["display_name"] == "Ravi Kumar"
    assert board[0]["level"] == 4
    assert board[1]["display_name"] == "asha"
    assert board[1]["photo_url"] == "https://img/asha.png"
    assert board[2]["display_name"] == "u3"
    assert len(sticks_service.leaderboard(limit=2)) == 2


def test_user_lookups_are_cached_per_directory(db):
    cache = RequestCache()
    users = UserDirectory(db, cache=cache)

    assert users.get_user("u1") is None
    db.collection("users").document("u1").set({"username": "asha"})
    # Cached miss until the cache is dropped
    assert users.get_user("u1") is None

    cache.invalidate("u1")
    assert users.display_name("u1") == "asha"


class BrokenDB:
    def collection(self, name):
        raise RuntimeError("connection reset")


def test_read_failure_is_wrapped():
    service = SticksService(BrokenDB(), locks=UserLockRegistry(), users=UserDirectory(BrokenDB()))
    with pytest.raises(StoreReadFailure):
        service.get_sticks("u1")
    with pytest.raises(StoreReadFailure):
        service.leaderboard()


def test_lock_registry_returns_same_lock_per_uid():
    locks = UserLockRegistry()
    assert locks.lock_for("u1") is locks.lock_for("u1")
    assert locks.lock_for("u1") is not locks.lock_for("u2")


def test_lock_registry_forgets_unused_locks():
    locks = UserLockRegistry()
    lock = locks.lock_for("u1")
    locks.lock_for("u2")

    # u2's lock is no longer referenced by anyone
    assert len(locks) == 1
    del lock
    assert len(locks) == 0


def test_record_post_does_not_keep_locks(sticks_service):
    sticks_service.record_post("u1", NOW)
    sticks_service.record_post("u2", NOW)
    assert len(sticks_service.locks) == 0
