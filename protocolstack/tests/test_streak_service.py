"""Tests for the streak read-compute-write orchestration."""

import threading
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from protocolstack.core.errors import InvalidDateFormatError, UnknownTimezoneError, ValidationError
from protocolstack.features.streaks.service import StreakService
from protocolstack.features.streaks.store import InMemoryStreakStore

NOON = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    return StreakService(store=InMemoryStreakStore())


@pytest.fixture
def stack_id():
    return str(uuid4())


def _complete(service, stack_id, day_offset, user_id="user_1", tz_name="UTC"):
    return service.update_streak(
        user_id=user_id,
        stack_id=stack_id,
        tz_name=tz_name,
        now=NOON + timedelta(days=day_offset),
    )


def test_first_completion_creates_record(service, stack_id):
    result = _complete(service, stack_id, 0)

    assert result.streak == 1
    assert result.longest_streak == 1
    assert result.badge_unlocked is None
    assert result.today == "2025-12-01"

    record = service.store.get_streak("user_1", stack_id)
    assert record.last_activity_date == "2025-12-01"
    assert record.timezone == "UTC"
    assert record.created_at is not None


def test_same_day_twice_is_noop(service, stack_id):
    first = _complete(service, stack_id, 0)
    second = _complete(service, stack_id, 0)

    assert first.streak == second.streak == 1
    assert len(service.get_user_streaks("user_1")) == 1


def test_seven_days_unlock_exactly_one_badge(service, stack_id):
    results = [_complete(service, stack_id, day) for day in range(7)]

    assert [r.streak for r in results] == [1, 2, 3, 4, 5, 6, 7]
    assert results[-1].badge_unlocked == "streak_7"
    assert results[-1].badge_info.label == "7-Day Streak"

    # Repeat on day 7 and continue; no duplicate badge
    _complete(service, stack_id, 6)
    _complete(service, stack_id, 7)
    badges = service.get_stack_badges("user_1", stack_id)
    assert [b.badge_type for b in badges] == ["streak_7"]


def test_grace_then_reset_persists(service, stack_id):
    _complete(service, stack_id, 0)
    _complete(service, stack_id, 1)
    saved = _complete(service, stack_id, 3)
    assert saved.streak == 3
    assert saved.grace_period_used is True

    broken = _complete(service, stack_id, 5)
    assert broken.streak == 1
    assert broken.longest_streak == 3
    assert broken.grace_period_used is False


def test_stacks_are_independent(service):
    a, b = str(uuid4()), str(uuid4())
    _complete(service, a, 0)
    _complete(service, a, 1)
    _complete(service, b, 1)

    streaks = {r.stack_id: r.current_streak for r in service.get_user_streaks("user_1")}
    assert streaks == {a: 2, b: 1}


def test_users_are_independent(service, stack_id):
    _complete(service, stack_id, 0, user_id="alice")
    _complete(service, stack_id, 1, user_id="alice")
    _complete(service, stack_id, 1, user_id="bob")

    assert service.store.get_streak("alice", stack_id).current_streak == 2
    assert service.store.get_streak("bob", stack_id).current_streak == 1
    assert service.get_user_badges("bob") == []


def test_timezone_decides_today(service, stack_id):
    # 03:00 UTC on Dec 2 is still Dec 1 in New York
    late_night = datetime(2025, 12, 2, 3, 0, tzinfo=timezone.utc)
    result = service.update_streak(user_id="u", stack_id=stack_id, tz_name="America/New_York", now=late_night)
    assert result.today == "2025-12-01"
    assert service.store.get_streak("u", stack_id).timezone == "America/New_York"


def test_missing_timezone_uses_default(service, stack_id):
    result = service.update_streak(user_id="u", stack_id=stack_id, tz_name=None, now=NOON)
    assert result.today == "2025-12-01"
    assert service.store.get_streak("u", stack_id).timezone == "UTC"


def test_unknown_timezone_rejected(service, stack_id):
    with pytest.raises(UnknownTimezoneError):
        service.update_streak(user_id="u", stack_id=stack_id, tz_name="Nowhere/Land", now=NOON)
    assert service.store.get_streak("u", stack_id) is None


def test_invalid_stack_id_rejected(service):
    with pytest.raises(ValidationError):
        service.update_streak(user_id="u", stack_id="not-a-uuid", now=NOON)


def test_stack_streak_reports_risk(service, stack_id):
    _complete(service, stack_id, 0)

    same_day = service.get_stack_streak(user_id="user_1", stack_id=stack_id, now=NOON)
    grace_day = service.get_stack_streak(user_id="user_1", stack_id=stack_id, now=NOON + timedelta(days=2))

    assert same_day.record.current_streak == 1
    assert same_day.is_at_risk is False
    assert grace_day.is_at_risk is True
    assert grace_day.today == "2025-12-03"


def test_stack_streak_uses_stored_timezone(service, stack_id):
    service.update_streak(user_id="u", stack_id=stack_id, tz_name="Asia/Tokyo", now=NOON)
    status = service.get_stack_streak(user_id="u", stack_id=stack_id, now=datetime(2025, 12, 2, 16, 0, tzinfo=timezone.utc))
    # 16:00 UTC Dec 2 is Dec 3 in Tokyo: two days after Dec 1
    assert status.today == "2025-12-03"
    assert status.is_at_risk is True


def test_stack_streak_without_record(service, stack_id):
    status = service.get_stack_streak(user_id="nobody", stack_id=stack_id, now=NOON)
    assert status.record is None
    assert status.is_at_risk is False
    assert status.to_dict()["streak"] is None


def test_concurrent_completions_advance_once(service, stack_id):
    _complete(service, stack_id, 0)

    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(_complete(service, stack_id, 1))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert {r.streak for r in results} == {2}
    assert service.store.get_streak("user_1", stack_id).current_streak == 2


def test_store_failure_is_logged_and_raised(stack_id, caplog):
    class BrokenStore(InMemoryStreakStore):
        def apply_completion(self, *args, **kwargs):
            raise RuntimeError("db down")

    service = StreakService(store=BrokenStore())
    with caplog.at_level("ERROR", logger="protocolstack"):
        with pytest.raises(RuntimeError):
            service.update_streak(user_id="u", stack_id=stack_id, now=NOON)
    assert any(r.getMessage() == "streak.update_failed" for r in caplog.records)


def test_default_service_uses_shared_store(fresh_streak_store, stack_id):
    from protocolstack.features.streaks.service import streak_service

    streak_service.update_streak(user_id="u", stack_id=stack_id, now=NOON)
    assert fresh_streak_store.get_streak("u", stack_id).current_streak == 1


def _corrupt_last_activity(store, user_id, stack_id, value):
    record = store.get_streak(user_id, stack_id)
    record.last_activity_date = value


def test_malformed_stored_date_rejected_on_update(service, stack_id):
    _complete(service, stack_id, 0)
    _corrupt_last_activity(service.store, "user_1", stack_id, "2025/12/01")

    with pytest.raises(InvalidDateFormatError):
        _complete(service, stack_id, 1)
    assert service.store.get_streak("user_1", stack_id).current_streak == 1


def test_malformed_stored_date_rejected_on_read(service, stack_id):
    _complete(service, stack_id, 0)
    _corrupt_last_activity(service.store, "user_1", stack_id, "2025-02-30")

    with pytest.raises(InvalidDateFormatError):
        service.get_stack_streak(user_id="user_1", stack_id=stack_id, now=NOON)


def test_clear_keeps_per_key_locks(stack_id):
    store = InMemoryStreakStore()
    key = ("user_1", stack_id)
    lock = store._lock_for(key)
    with lock:
        store.clear()
        assert store._lock_for(key) is lock
