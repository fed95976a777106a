"""
PostgreSQL-backed streak store.

Same interface as InMemoryStreakStore. A completion runs in a single
session: the streak row is locked FOR UPDATE, then upserted together with
any newly unlocked badge.
"""

from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from protocolstack.core.database import (
    create_all_tables,
    get_db_session,
    user_badges,
    user_streaks,
)
from protocolstack.features.streaks.store import ComputeFn, utc_now
from protocolstack.models.streak import (
    BadgeRecord,
    StreakRecord,
    StreakResult,
    StreakState,
)


def _row_to_record(row) -> StreakRecord:
    m = row._mapping
    return StreakRecord(
        user_id=m["user_id"],
        stack_id=m["stack_id"],
        current_streak=m["current_streak"],
        longest_streak=m["longest_streak"],
        last_activity_date=m["last_activity_date"],
        grace_period_used=m["grace_period_used"],
        timezone=m["timezone"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _row_to_badge(row) -> BadgeRecord:
    m = row._mapping
    return BadgeRecord(
        user_id=m["user_id"],
        stack_id=m["stack_id"],
        badge_type=m["badge_type"],
        unlocked_at=m["unlocked_at"],
    )


class PostgresStreakStore:
    """PostgreSQL streak store."""

    @classmethod
    def create(cls) -> "PostgresStreakStore":
        # Idempotent; tables that already exist are left alone
        create_all_tables()
        return cls()

    def apply_completion(
        self,
        user_id: str,
        stack_id: str,
        tz_name: str,
        compute: ComputeFn,
    ) -> Tuple[StreakRecord, StreakResult]:
        with get_db_session() as session:
            existing = session.execute(
                select(user_streaks)
                .where(user_streaks.c.user_id == user_id, user_streaks.c.stack_id == stack_id)
                .with_for_update()
            ).first()

            unlocked = frozenset(
                session.execute(
                    select(user_badges.c.badge_type).where(
                        user_badges.c.user_id == user_id,
                        user_badges.c.stack_id == stack_id,
                    )
                ).scalars().all()
            )

            state = _row_to_record(existing).to_state() if existing else StreakState(timezone=tz_name)
            result, activity_date = compute(state, unlocked)

            now = utc_now()
            values = {
                "current_streak": result.new_streak,
                "longest_streak": result.new_longest_streak,
                "last_activity_date": activity_date,
                "grace_period_used": result.new_grace_period_used,
                "timezone": tz_name,
                "updated_at": now,
            }
            stmt = (
                pg_insert(user_streaks)
                .values(user_id=user_id, stack_id=stack_id, created_at=now, **values)
                .on_conflict_do_update(constraint="uq_user_streaks_user_stack", set_=values)
                .returning(*user_streaks.c)
            )
            saved = session.execute(stmt).first()

            if result.badge_to_unlock and result.badge_to_unlock not in unlocked:
                session.execute(
                    pg_insert(user_badges)
                    .values(
                        user_id=user_id,
                        stack_id=stack_id,
                        badge_type=result.badge_to_unlock,
                        unlocked_at=now,
                    )
                    .on_conflict_do_nothing(constraint="uq_user_badges_user_stack_type")
                )

            return _row_to_record(saved), result

    def get_streak(self, user_id: str, stack_id: str) -> Optional[StreakRecord]:
        with get_db_session() as session:
            row = session.execute(
                select(user_streaks).where(
                    user_streaks.c.user_id == user_id,
                    user_streaks.c.stack_id == stack_id,
                )
            ).first()
            return _row_to_record(row) if row else None

    def list_streaks(self, user_id: str) -> List[StreakRecord]:
        with get_db_session() as session:
            rows = session.execute(
                select(user_streaks)
                .where(user_streaks.c.user_id == user_id)
                .order_by(user_streaks.c.stack_id)
            ).all()
            return [_row_to_record(r) for r in rows]

    def list_badges(self, user_id: str, stack_id: Optional[str] = None) -> List[BadgeRecord]:
        query = select(user_badges).where(user_badges.c.user_id == user_id)
        if stack_id is not None:
            query = query.where(user_badges.c.stack_id == stack_id)
        query = query.order_by(user_badges.c.unlocked_at, user_badges.c.id)
        with get_db_session() as session:
            return [_row_to_badge(r) for r in session.execute(query).all()]

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with get_db_session() as session:
            session.execute(delete(user_badges))
            session.execute(delete(user_streaks))
