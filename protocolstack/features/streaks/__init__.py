"""
Daily streaks per user-stack pair.

- dates: "today" in a timezone and calendar-day differences
- engine: advance_streak / is_at_risk (pure, no I/O)
- validators: boundary checks for dates, timezones and stack ids
- store / store_pg: in-memory and PostgreSQL persistence
- service: read-compute-write orchestration used by the API
"""
