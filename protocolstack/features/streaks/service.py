from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from protocolstack.core.logging import log_event
from protocolstack.features.streaks.dates import resolve_today
from protocolstack.features.streaks.engine import StreakEngine
from protocolstack.features.streaks.store import get_store
from protocolstack.features.streaks.validators import (
    resolve_timezone,
    validate_date_string,
    validate_stack_id,
)
from protocolstack.models.streak import (
    BadgeInfo,
    BadgeRecord,
    BadgeType,
    StreakRecord,
    StreakState,
    get_badge_info,
)


def _checked_state(state: StreakState) -> StreakState:
    # Stored dates come back from the database as plain strings
    if state.last_activity_date is not None:
        validate_date_string(state.last_activity_date)
    return state


@dataclass(frozen=True)
class UpdateStreakResult:
    streak: int
    longest_streak: int
    grace_period_used: bool
    badge_unlocked: Optional[BadgeType]
    today: str

    @property
    def badge_info(self) -> Optional[BadgeInfo]:
        return get_badge_info(self.badge_unlocked) if self.badge_unlocked else None

    def to_dict(self) -> dict:
        info = self.badge_info
        return {
            "success": True,
            "streak": self.streak,
            "longest_streak": self.longest_streak,
            "grace_period_used": self.grace_period_used,
            "badge_unlocked": self.badge_unlocked,
            "badge_info": info.to_dict() if info else None,
            "today": self.today,
        }


@dataclass(frozen=True)
class StackStreakStatus:
    record: Optional[StreakRecord]
    is_at_risk: bool
    today: str

    def to_dict(self) -> dict:
        return {
            "streak": self.record.to_dict() if self.record else None,
            "is_at_risk": self.is_at_risk,
            "today": self.today,
        }


class StreakService:
    """Read-compute-write orchestration around the pure streak engine."""

    def __init__(self, store=None):
        self._store = store

    @property
    def store(self):
        return self._store if self._store is not None else get_store()

    def update_streak(
        self,
        *,
        user_id: str,
        stack_id: str,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UpdateStreakResult:
        """
        Record that the user completed every protocol in the stack today.

        Args:
            user_id: Authenticated user
            stack_id: Stack UUID
            tz_name: Client timezone; empty falls back to DEFAULT_TIMEZONE
            now: Fixed clock for deterministic tests

        Returns:
            UpdateStreakResult with the persisted streak and any unlocked badge
        """
        stack_id = validate_stack_id(stack_id)
        zone = resolve_timezone(tz_name)
        today = resolve_today(zone, now=now)

        def compute(state, unlocked):
            return StreakEngine.advance_streak(_checked_state(state), today, unlocked), today

        try:
            record, result = self.store.apply_completion(user_id, stack_id, zone, compute)
        except Exception as e:
            log_event(
                "error",
                "streak.update_failed",
                request_id=None,
                user_id=user_id,
                stack_id=stack_id,
                event_type="streak.update_failed",
                extra={"error": e},
            )
            raise

        log_event(
            "info",
            "streak.advanced",
            request_id=None,
            user_id=user_id,
            stack_id=stack_id,
            event_type="streak.advanced",
            extra={
                "today": today,
                "timezone": zone,
                "streak": record.current_streak,
                "longest": record.longest_streak,
                "grace_used": record.grace_period_used,
            },
        )
        if result.badge_to_unlock:
            log_event(
                "info",
                "streak.badge_unlocked",
                request_id=None,
                user_id=user_id,
                stack_id=stack_id,
                event_type="streak.badge_unlocked",
                extra={"badge_type": result.badge_to_unlock},
            )

        return UpdateStreakResult(
            streak=record.current_streak,
            longest_streak=record.longest_streak,
            grace_period_used=record.grace_period_used,
            badge_unlocked=result.badge_to_unlock,
            today=today,
        )

    def get_stack_streak(
        self,
        *,
        user_id: str,
        stack_id: str,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> StackStreakStatus:
        """Stored streak for one stack plus whether it is at risk today."""
        stack_id = validate_stack_id(stack_id)
        record = self.store.get_streak(user_id, stack_id)
        # Prefer the caller's zone, then the zone stored with the streak
        zone = resolve_timezone(tz_name or (record.timezone if record else None))
        today = resolve_today(zone, now=now)
        at_risk = StreakEngine.is_at_risk(_checked_state(record.to_state()), today) if record else False
        return StackStreakStatus(record=record, is_at_risk=at_risk, today=today)

    def get_user_streaks(self, user_id: str) -> List[StreakRecord]:
        return self.store.list_streaks(user_id)

    def get_user_badges(self, user_id: str) -> List[BadgeRecord]:
        return self.store.list_badges(user_id)

    def get_stack_badges(self, user_id: str, stack_id: str) -> List[BadgeRecord]:
        return self.store.list_badges(user_id, validate_stack_id(stack_id))


# Singleton service used by routes
streak_service = StreakService()
