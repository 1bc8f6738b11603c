# Overview: PIN attempt lockout per (branch, session) key behind a pluggable store.

"""
PIN Lockout Guard

WHY: Operator PINs are six digits. Without throttling, a kiosk could walk
the whole PIN space. This guard is a defense-in-depth throttle, not an
audit record (successful switches are audited in operator_switch_log).

STATES per lockout key "<branch_id>:<session_id>":
- Open: no failures inside the failure window
- Warned: 1..N-1 failures inside the window
- Locked: N failures; lasts exactly PIN_LOCKOUT_SECONDS from the Nth failure
Locked -> Open when the lock elapses; any state -> Open on success.
Failures only increase the count or keep the lock; nothing resets it except
success, window expiry or lock expiry.

STORES:
- InMemoryLockoutStore: process-local dict, one lock for read-modify-write.
  Under several worker processes each process counts separately, so the
  effective threshold multiplies by the worker count.
- DatabaseLockoutStore: pin_lockouts rows, shared by every process.
Select with PIN_LOCKOUT_BACKEND = "memory" | "database".
"""

from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import DependencyUnavailable
from ..extensions import db
from ..models import PinLockout


@dataclass(frozen=True)
class LockoutState:
    failure_count: int
    first_failure_at: float
    locked_until: float | None = None

    def is_locked(self, now: float) -> bool:
        return self.locked_until is not None and now < self.locked_until


@dataclass(frozen=True)
class LockoutStatus:
    locked: bool
    remaining_seconds: int | None = None


@dataclass(frozen=True)
class FailureResult:
    locked: bool
    attempts_remaining: int | None = None
    lockout_remaining_seconds: int | None = None


Mutator = Callable[[Optional[LockoutState]], Optional[LockoutState]]


class LockoutStore(ABC):
    """Keyed lockout state with atomic read-modify-write."""

    @abstractmethod
    def mutate(self, key: str, fn: Mutator) -> LockoutState | None:
        """Apply fn to the current state of key atomically; store and return the result (None deletes)."""

    def get(self, key: str) -> LockoutState | None:
        return self.mutate(key, lambda state: state)


class InMemoryLockoutStore(LockoutStore):
    def __init__(self):
        self._states: dict[str, LockoutState] = {}
        self._lock = threading.Lock()

    def mutate(self, key, fn):
        with self._lock:
            new_state = fn(self._states.get(key))
            if new_state is None:
                self._states.pop(key, None)
            else:
                self._states[key] = new_state
            return new_state

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


class DatabaseLockoutStore(LockoutStore):
    """
    Lockout rows in pin_lockouts.

    Row lock via SELECT ... FOR UPDATE where the backend supports it (SQLite
    serializes writers on its own). A concurrent first insert of the same key
    raises IntegrityError and is retried once against the winner's row.
    """

    def mutate(self, key, fn):
        try:
            return self._mutate(key, fn)
        except IntegrityError:
            db.session.rollback()
            return self._mutate(key, fn)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise DependencyUnavailable("Lockout store unavailable") from e

    def _mutate(self, key, fn):
        row = (
            db.session.query(PinLockout)
            .filter_by(lockout_key=key)
            .with_for_update()
            .first()
        )
        current = None
        if row is not None:
            current = LockoutState(
                failure_count=row.failure_count,
                first_failure_at=row.first_failure_at or 0.0,
                locked_until=row.locked_until,
            )

        new_state = fn(current)

        if new_state is None:
            if row is not None:
                db.session.delete(row)
        else:
            if row is None:
                row = PinLockout(lockout_key=key)
                db.session.add(row)
            row.failure_count = new_state.failure_count
            row.first_failure_at = new_state.first_failure_at
            row.locked_until = new_state.locked_until

        db.session.commit()
        return new_state


def lockout_key(branch_id: str, session_id: str) -> str:
    return f"{branch_id}:{session_id}"


class PinLockoutGuard:
    def __init__(
        self,
        store: LockoutStore,
        max_attempts: int = 5,
        window_seconds: int = 15 * 60,
        lockout_seconds: int = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lockout_seconds = lockout_seconds
        self.clock = clock

    def _is_stale(self, state: LockoutState, now: float) -> bool:
        if state.locked_until is not None:
            return now >= state.locked_until
        return now - state.first_failure_at > self.window_seconds

    def check_lockout(self, key: str) -> LockoutStatus:
        """Must be called before any PIN comparison."""
        now = self.clock()

        def expire(state):
            if state is not None and self._is_stale(state, now):
                return None
            return state

        state = self.store.mutate(key, expire)
        if state is not None and state.is_locked(now):
            return LockoutStatus(locked=True, remaining_seconds=math.ceil(state.locked_until - now))
        return LockoutStatus(locked=False)

    def record_failure(self, key: str) -> FailureResult:
        now = self.clock()

        def fail(state):
            if state is None or self._is_stale(state, now):
                state = LockoutState(failure_count=0, first_failure_at=now)
            if state.is_locked(now):
                return LockoutState(state.failure_count + 1, state.first_failure_at, state.locked_until)

            count = state.failure_count + 1
            locked_until = now + self.lockout_seconds if count >= self.max_attempts else None
            return LockoutState(count, state.first_failure_at, locked_until)

        state = self.store.mutate(key, fail)

        if state.is_locked(now):
            return FailureResult(
                locked=True,
                lockout_remaining_seconds=math.ceil(state.locked_until - now),
            )
        return FailureResult(
            locked=False,
            attempts_remaining=self.max_attempts - state.failure_count,
        )

    def reset_lockout(self, key: str) -> None:
        self.store.mutate(key, lambda state: None)


def build_guard(config) -> PinLockoutGuard:
    """Build the guard described by app config (called from create_app)."""
    backend = config.get("PIN_LOCKOUT_BACKEND", "memory")
    if backend == "memory":
        store = InMemoryLockoutStore()
    elif backend == "database":
        store = DatabaseLockoutStore()
    else:
        raise ValueError(f"Unknown PIN_LOCKOUT_BACKEND: {backend}")

    return PinLockoutGuard(
        store,
        max_attempts=config.get("PIN_MAX_ATTEMPTS", 5),
        window_seconds=config.get("PIN_FAILURE_WINDOW_SECONDS", 15 * 60),
        lockout_seconds=config.get("PIN_LOCKOUT_SECONDS", 5 * 60),
    )


def get_guard() -> PinLockoutGuard:
    return current_app.extensions["pin_lockout_guard"]
