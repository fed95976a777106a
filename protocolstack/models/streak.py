from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Tuple

BadgeType = Literal["streak_7", "streak_30", "streak_100"]


@dataclass(frozen=True)
class Milestone:
    days: int
    badge: BadgeType
    label: str


# Ascending by days; badge evaluation relies on this order.
MILESTONES: Tuple[Milestone, ...] = (
    Milestone(days=7, badge="streak_7", label="7-Day Streak"),
    Milestone(days=30, badge="streak_30", label="30-Day Streak"),
    Milestone(days=100, badge="streak_100", label="100-Day Streak"),
)

BADGE_TYPES: Tuple[str, ...] = tuple(m.badge for m in MILESTONES)


@dataclass(frozen=True)
class BadgeInfo:
    label: str
    days: int

    def to_dict(self) -> dict:
        return {"label": self.label, "days": self.days}


def get_badge_info(badge_type: str) -> BadgeInfo:
    """Display label and day threshold for a badge type."""
    for milestone in MILESTONES:
        if milestone.badge == badge_type:
            return BadgeInfo(label=milestone.label, days=milestone.days)
    return BadgeInfo(label="Unknown", days=0)


@dataclass(frozen=True)
class StreakState:
    """
    Streak state for one user-stack pair, as loaded from storage.

    Dates are naive calendar strings (YYYY-MM-DD); the timezone is only
    used to work out which calendar day "today" is.
    """

    last_activity_date: Optional[str] = None
    current_streak: int = 0
    longest_streak: int = 0
    grace_period_used: bool = False
    timezone: str = "UTC"


@dataclass(frozen=True)
class StreakResult:
    new_streak: int
    new_longest_streak: int
    new_grace_period_used: bool
    badge_to_unlock: Optional[BadgeType] = None

    @property
    def is_new_milestone(self) -> bool:
        return self.badge_to_unlock is not None


@dataclass
class StreakRecord:
    """Persisted streak row. No direct DB concerns."""

    user_id: str
    stack_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None
    grace_period_used: bool = False
    timezone: str = "UTC"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_state(self) -> StreakState:
        return StreakState(
            last_activity_date=self.last_activity_date,
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            grace_period_used=self.grace_period_used,
            timezone=self.timezone,
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "stack_id": self.stack_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_activity_date": self.last_activity_date,
            "grace_period_used": self.grace_period_used,
            "timezone": self.timezone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class BadgeRecord:
    user_id: str
    stack_id: str
    badge_type: BadgeType
    unlocked_at: datetime

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "stack_id": self.stack_id,
            "badge_type": self.badge_type,
            "unlocked_at": self.unlocked_at.isoformat(),
        }
