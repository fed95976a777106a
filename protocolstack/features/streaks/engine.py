"""
Streak Engine

Pure, deterministic streak state machine. No I/O, no clock, no storage.

Rules:
- No prior activity: start at 1
- Same day: no change
- Yesterday: increment, grace resets
- 2 days ago and grace unused: increment, grace used
- Anything else: reset to 1
- Longest streak never decreases
- At most one milestone badge per call, lowest unearned first
"""

from typing import AbstractSet, Iterable, Optional

from protocolstack.features.streaks.dates import days_between
from protocolstack.models.streak import (
    MILESTONES,
    BadgeType,
    Milestone,
    StreakResult,
    StreakState,
)


class StreakEngine:
    """Pure streak and risk computation."""

    GRACE_GAP_DAYS = 2

    @staticmethod
    def advance_streak(
        state: StreakState,
        today: str,
        unlocked_badges: Iterable[str] = (),
    ) -> StreakResult:
        """
        Compute the streak after a completion recorded on `today`.

        Args:
            state: Prior streak state for the user-stack pair
            today: Caller-resolved calendar date (YYYY-MM-DD)
            unlocked_badges: Badge types already recorded for this stack

        Returns:
            StreakResult with the new state and at most one badge to unlock
        """
        if not state.last_activity_date:
            return StreakResult(
                new_streak=1,
                new_longest_streak=max(1, state.longest_streak),
                new_grace_period_used=False,
                badge_to_unlock=None,
            )

        gap = days_between(today, state.last_activity_date)

        if gap == 0:
            return StreakResult(
                new_streak=state.current_streak,
                new_longest_streak=state.longest_streak,
                new_grace_period_used=state.grace_period_used,
                badge_to_unlock=None,
            )

        if gap == 1:
            new_streak = state.current_streak + 1
            grace_used = False
        elif gap == StreakEngine.GRACE_GAP_DAYS and not state.grace_period_used:
            new_streak = state.current_streak + 1
            grace_used = True
        else:
            # Longer gap, grace already spent, or today precedes the last activity
            new_streak = 1
            grace_used = False

        return StreakResult(
            new_streak=new_streak,
            new_longest_streak=max(new_streak, state.longest_streak),
            new_grace_period_used=grace_used,
            badge_to_unlock=StreakEngine.badge_for(new_streak, frozenset(unlocked_badges)),
        )

    @staticmethod
    def badge_for(
        streak: int,
        unlocked_badges: AbstractSet[str],
        milestones: Iterable[Milestone] = MILESTONES,
    ) -> Optional[BadgeType]:
        """First milestone (ascending) reached by `streak` and not yet unlocked."""
        for milestone in milestones:
            if streak >= milestone.days and milestone.badge not in unlocked_badges:
                return milestone.badge
        return None

    @staticmethod
    def is_at_risk(state: StreakState, today: str) -> bool:
        """
        True when missing today would break the streak.

        Either grace is already spent and the last activity was yesterday,
        or grace is unused and today is the last day it can cover.
        """
        if not state.last_activity_date:
            return False

        gap = days_between(today, state.last_activity_date)
        if gap == 1 and state.grace_period_used:
            return True
        if gap == StreakEngine.GRACE_GAP_DAYS and not state.grace_period_used:
            return True
        return False


advance_streak = StreakEngine.advance_streak
is_at_risk = StreakEngine.is_at_risk
