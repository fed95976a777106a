"""
Streak persistence.

In-memory implementation plus store selection. PostgreSQL lives in
store_pg.py and exposes the same interface.

apply_completion is the only write path: it reads the current state,
hands it to `compute`, and writes the result back as one atomic unit
per (user_id, stack_id).
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from protocolstack.core.config import settings
from protocolstack.models.streak import (
    BadgeRecord,
    StreakRecord,
    StreakResult,
    StreakState,
)

logger = logging.getLogger("protocolstack")

# compute(state, unlocked_badges) -> (result, activity_date)
ComputeFn = Callable[[StreakState, FrozenSet[str]], Tuple[StreakResult, str]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStreakStore:
    """
    Process-local streak store.

    Per-key locks serialize completions for the same user-stack pair.
    """

    def __init__(self):
        self._streaks: Dict[Tuple[str, str], StreakRecord] = {}
        self._badges: List[BadgeRecord] = []
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def apply_completion(
        self,
        user_id: str,
        stack_id: str,
        tz_name: str,
        compute: ComputeFn,
    ) -> Tuple[StreakRecord, StreakResult]:
        key = (user_id, stack_id)
        with self._lock_for(key):
            existing = self._streaks.get(key)
            state = existing.to_state() if existing else StreakState(timezone=tz_name)
            unlocked = frozenset(self._badge_types(user_id, stack_id))

            result, activity_date = compute(state, unlocked)

            now = utc_now()
            record = StreakRecord(
                user_id=user_id,
                stack_id=stack_id,
                current_streak=result.new_streak,
                longest_streak=result.new_longest_streak,
                last_activity_date=activity_date,
                grace_period_used=result.new_grace_period_used,
                timezone=tz_name,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._streaks[key] = record

            if result.badge_to_unlock and result.badge_to_unlock not in unlocked:
                self._badges.append(
                    BadgeRecord(
                        user_id=user_id,
                        stack_id=stack_id,
                        badge_type=result.badge_to_unlock,
                        unlocked_at=now,
                    )
                )

            return record, result

    def get_streak(self, user_id: str, stack_id: str) -> Optional[StreakRecord]:
        return self._streaks.get((user_id, stack_id))

    def list_streaks(self, user_id: str) -> List[StreakRecord]:
        return sorted(
            (r for (uid, _), r in self._streaks.items() if uid == user_id),
            key=lambda r: r.stack_id,
        )

    def list_badges(self, user_id: str, stack_id: Optional[str] = None) -> List[BadgeRecord]:
        return [
            b for b in self._badges
            if b.user_id == user_id and (stack_id is None or b.stack_id == stack_id)
        ]

    def _badge_types(self, user_id: str, stack_id: str) -> List[str]:
        return [b.badge_type for b in self.list_badges(user_id, stack_id)]

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with self._guard:
            self._streaks.clear()
            self._badges.clear()


def get_streak_store():
    """
    Pick the store implementation from settings.STREAK_STORE.

    - "memory": always in-memory
    - "postgres": PostgreSQL, errors propagate
    - "auto": PostgreSQL when DATABASE_URL is set and reachable, else in-memory
    """
    mode = (settings.STREAK_STORE or "auto").lower()
    if mode == "memory":
        return InMemoryStreakStore()

    from protocolstack.features.streaks.store_pg import PostgresStreakStore

    if mode == "postgres":
        return PostgresStreakStore.create()

    # Read the environment directly, settings may be cached from import time
    if os.getenv("DATABASE_URL") or os.getenv("TEST_DATABASE_URL"):
        from protocolstack.core.database import check_connection

        if check_connection():
            return PostgresStreakStore.create()
        logger.warning("[streak_store] PostgreSQL unavailable, falling back to in-memory")

    return InMemoryStreakStore()


_store_instance = None
_store_lock = threading.Lock()


def get_store():
    """Singleton streak store used by the service and routes."""
    global _store_instance
    with _store_lock:
        if _store_instance is None:
            _store_instance = get_streak_store()
        return _store_instance


def reset_store():
    """FOR TESTING ONLY - forces re-initialization on next get_store() call."""
    global _store_instance
    with _store_lock:
        _store_instance = None
