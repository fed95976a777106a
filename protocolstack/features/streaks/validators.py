"""Boundary validation for streak inputs. The engine itself trusts its inputs."""

import re
from datetime import date
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from protocolstack.core.config import settings
from protocolstack.core.errors import InvalidDateFormatError, UnknownTimezoneError, ValidationError
from protocolstack.core.logging import log_event

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date_string(value: str) -> str:
    """Return `value` if it is a real calendar date in YYYY-MM-DD form."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidDateFormatError(f"Expected a YYYY-MM-DD date, got {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise InvalidDateFormatError(f"Not a calendar date: {value!r}")
    return value


def validate_timezone(tz_name: str) -> str:
    """Return `tz_name` if zoneinfo can resolve it."""
    if not tz_name or not tz_name.strip():
        raise UnknownTimezoneError("Timezone must not be empty")
    name = tz_name.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise UnknownTimezoneError(f"Unknown timezone: {name!r}")
    return name


def resolve_timezone(tz_name: Optional[str], *, strict: Optional[bool] = None) -> str:
    """
    Pick the timezone used to compute "today".

    Empty or missing -> settings.DEFAULT_TIMEZONE.
    Unknown -> UnknownTimezoneError in strict mode, default zone otherwise.
    """
    default = settings.DEFAULT_TIMEZONE or "UTC"
    if tz_name is None or not tz_name.strip():
        return default

    strict_mode = settings.STRICT_TIMEZONES if strict is None else strict
    try:
        return validate_timezone(tz_name)
    except UnknownTimezoneError:
        if strict_mode:
            raise
        log_event(
            "warning",
            "streak.timezone_fallback",
            request_id=None,
            event_type="streak.timezone_fallback",
            extra={"requested": tz_name, "fallback": default},
        )
        return default


def validate_stack_id(stack_id: str) -> str:
    """Stack ids are UUIDs; returns the canonical lowercase form."""
    try:
        return str(UUID(str(stack_id)))
    except ValueError:
        raise ValidationError("Invalid stack ID")
