"""
PIN lockout guard tests.

Verifies:
- The Nth failure locks the key for exactly the lockout duration
- Success before N resets the counter to zero
- Failures outside the window start a new count
- Keys are independent
- In-memory and database stores behave the same
"""

import threading

import pytest

from cspace.models import PinLockout
from cspace.services.lockout_service import (
    DatabaseLockoutStore,
    InMemoryLockoutStore,
    PinLockoutGuard,
    build_guard,
    lockout_key,
)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "database"])
def guard(request, clock, db_session):
    store = InMemoryLockoutStore() if request.param == "memory" else DatabaseLockoutStore()
    return PinLockoutGuard(store, max_attempts=5, window_seconds=900, lockout_seconds=300, clock=clock)


KEY = lockout_key("yunusabad", "42")


class TestLockoutThreshold:

    def test_open_key_is_not_locked(self, guard):
        assert guard.check_lockout(KEY).locked is False

    def test_attempts_remaining_counts_down(self, guard):
        remaining = [guard.record_failure(KEY).attempts_remaining for _ in range(4)]
        assert remaining == [4, 3, 2, 1]

    def test_nth_failure_locks(self, guard):
        for _ in range(4):
            assert guard.record_failure(KEY).locked is False

        fifth = guard.record_failure(KEY)
        assert fifth.locked is True
        assert fifth.lockout_remaining_seconds == 300

        status = guard.check_lockout(KEY)
        assert status.locked is True
        assert status.remaining_seconds == 300

    def test_lock_lasts_exactly_duration(self, guard, clock):
        for _ in range(5):
            guard.record_failure(KEY)

        clock.advance(299)
        status = guard.check_lockout(KEY)
        assert status.locked is True
        assert status.remaining_seconds == 1

        clock.advance(1)
        assert guard.check_lockout(KEY).locked is False

    def test_failures_while_locked_do_not_extend_lock(self, guard, clock):
        for _ in range(5):
            guard.record_failure(KEY)

        clock.advance(100)
        result = guard.record_failure(KEY)
        assert result.locked is True
        assert result.lockout_remaining_seconds == 200

    def test_after_lock_expiry_count_restarts(self, guard, clock):
        for _ in range(5):
            guard.record_failure(KEY)
        clock.advance(300)

        result = guard.record_failure(KEY)
        assert result.locked is False
        assert result.attempts_remaining == 4


class TestLockoutReset:

    def test_success_resets_counter(self, guard):
        for _ in range(4):
            guard.record_failure(KEY)
        guard.reset_lockout(KEY)

        assert guard.record_failure(KEY).attempts_remaining == 4

    def test_reset_unknown_key_is_noop(self, guard):
        guard.reset_lockout("nowhere:0")
        assert guard.check_lockout("nowhere:0").locked is False

    def test_window_expiry_resets_counter(self, guard, clock):
        for _ in range(4):
            guard.record_failure(KEY)
        clock.advance(901)

        assert guard.check_lockout(KEY).locked is False
        assert guard.record_failure(KEY).attempts_remaining == 4

    def test_keys_are_independent(self, guard):
        other = lockout_key("yunusabad", "43")
        for _ in range(5):
            guard.record_failure(KEY)

        assert guard.check_lockout(KEY).locked is True
        assert guard.check_lockout(other).locked is False


class TestStores:

    def test_database_store_persists_rows(self, db_session, clock):
        guard = PinLockoutGuard(DatabaseLockoutStore(), clock=clock)
        guard.record_failure(KEY)

        row = db_session.get(PinLockout, KEY)
        assert row.failure_count == 1
        assert row.locked_until is None

        guard.reset_lockout(KEY)
        db_session.expire_all()
        assert db_session.get(PinLockout, KEY) is None

    def test_in_memory_increments_are_atomic(self):
        guard = PinLockoutGuard(InMemoryLockoutStore(), max_attempts=1000, window_seconds=900)

        def hammer():
            for _ in range(50):
                guard.record_failure(KEY)

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert guard.store.get(KEY).failure_count == 400

    def test_build_guard_from_config(self, app):
        guard = build_guard({"PIN_LOCKOUT_BACKEND": "database", "PIN_MAX_ATTEMPTS": 3})
        assert isinstance(guard.store, DatabaseLockoutStore)
        assert guard.max_attempts == 3
        assert guard.lockout_seconds == 300

    def test_build_guard_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            build_guard({"PIN_LOCKOUT_BACKEND": "redis"})

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            PinLockoutGuard(InMemoryLockoutStore(), max_attempts=0)
