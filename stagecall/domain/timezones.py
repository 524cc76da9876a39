"""Timezone arithmetic for scheduled phase transitions.

Pure, stateless functions. Every function here prefers a safe fallback
(UTC, the unchanged input, zero) plus a log line over raising, because the
results back monitoring and operator surfaces as well as the engine.

Wall-clock to instant conversion goes through the IANA database (zoneinfo),
so offsets are the ones in force on the target date, DST included.
"""

import re
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEZONE = "UTC"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

# ZoneInfo raises ValueError for malformed keys and OSError for keys that
# resolve to directories in the tzdata package.
_ZONE_ERRORS = (ZoneInfoNotFoundError, ValueError, OSError, TypeError)


def validate_timezone(timezone_name: Any) -> bool:
    """Return True if timezone_name resolves in the IANA database.

    Logs a warning and returns False otherwise; never raises.
    """
    if not isinstance(timezone_name, str) or not timezone_name.strip():
        logger.warning("invalid_timezone", timezone=timezone_name)
        return False
    try:
        ZoneInfo(timezone_name)
    except _ZONE_ERRORS as exc:
        logger.warning("invalid_timezone", timezone=timezone_name, error=str(exc))
        return False
    return True


def get_project_timezone(project: Any) -> str:
    """Resolve the timezone a project's schedule runs in.

    Fallback order: the project's own zone, then its organization's zone,
    then "UTC" (with a warning). Never raises.
    """
    project_tz = getattr(project, "timezone", None)
    if project_tz and validate_timezone(project_tz):
        return project_tz

    organization_tz = getattr(project, "organization_timezone", None)
    if organization_tz and validate_timezone(organization_tz):
        return organization_tz

    logger.warning(
        "timezone_fallback_to_utc",
        project_id=getattr(project, "id", None),
        project_timezone=project_tz,
        organization_timezone=organization_tz,
    )
    return DEFAULT_TIMEZONE


def parse_time_of_day(value: Any) -> time | None:
    """Strictly parse "HH:MM" (or "H:MM"). Returns None when malformed or out of range."""
    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return time(hours, minutes)


def calculate_transition_time(value: date, time_of_day: str, timezone_name: str) -> datetime | date:
    """Return the UTC instant of time_of_day on value's calendar date in timezone_name.

    Args:
        value: Calendar date (a datetime contributes only its date part)
        time_of_day: "HH:MM" wall-clock time, hour 0-23, minute 0-59
        timezone_name: IANA zone; an unresolvable zone falls back to UTC

    Returns:
        Aware UTC datetime. On malformed input the error is logged and
        value is returned unchanged.
    """
    if not isinstance(value, date):
        logger.error("invalid_transition_date", value=repr(value))
        return value

    parsed = parse_time_of_day(time_of_day)
    if parsed is None:
        logger.error(
            "invalid_transition_time",
            time=time_of_day,
            timezone=timezone_name,
            expected="HH:MM",
        )
        return value

    if timezone_name != DEFAULT_TIMEZONE and not validate_timezone(timezone_name):
        logger.warning("transition_timezone_fallback_to_utc", timezone=timezone_name)
        timezone_name = DEFAULT_TIMEZONE

    day = value.date() if isinstance(value, datetime) else value
    local = datetime.combine(day, parsed, tzinfo=ZoneInfo(timezone_name))
    return local.astimezone(UTC)


def is_transition_due(instant: datetime, now: datetime | None = None) -> bool:
    """True once instant is at or before now."""
    if now is None:
        now = datetime.now(UTC)
    return instant <= now


def _in_us_summer_window(value: datetime, timezone_name: str) -> bool:
    if not timezone_name.startswith("America/"):
        return False
    month, day = value.month, value.day
    if 4 <= month <= 10:
        return True
    if month == 3:
        return day > 14
    if month == 11:
        return day < 7
    return False


def handle_daylight_saving(value: datetime, timezone_name: str) -> datetime:
    """Shift value back one hour for US zones inside the summer window.

    Heuristic: fixed window from mid-March to early November for America/*
    zones, not a walk of the zone database. calculate_transition_time does
    not use this; callers that already hold zone-resolved instants should not
    apply it.
    """
    if timezone_name == DEFAULT_TIMEZONE:
        return value
    if _in_us_summer_window(value, timezone_name):
        return value - timedelta(hours=1)
    return value


def get_timezone_offset_difference(first: str, second: str, now: datetime | None = None) -> int:
    """Minutes between the two zones' UTC offsets at now (first minus second).

    Returns 0 if either zone cannot be resolved.
    """
    if now is None:
        now = datetime.now(UTC)
    try:
        first_offset = now.astimezone(ZoneInfo(first)).utcoffset()
        second_offset = now.astimezone(ZoneInfo(second)).utcoffset()
    except _ZONE_ERRORS as exc:
        logger.error("timezone_offset_difference_failed", first=first, second=second, error=str(exc))
        return 0
    return int((first_offset - second_offset).total_seconds() // 60)


def format_in_timezone(instant: datetime, timezone_name: str) -> str:
    """Human-readable local rendering, e.g. "2025-03-15 00:00 EDT"."""
    try:
        local = instant.astimezone(ZoneInfo(timezone_name))
    except _ZONE_ERRORS as exc:
        logger.error("format_in_timezone_failed", timezone=timezone_name, error=str(exc))
        return instant.isoformat()
    return local.strftime("%Y-%m-%d %H:%M %Z")


def current_time_in_timezone(timezone_name: str, now: datetime | None = None) -> datetime:
    """Current instant expressed in timezone_name (UTC if the zone is invalid)."""
    if now is None:
        now = datetime.now(UTC)
    if not validate_timezone(timezone_name):
        timezone_name = DEFAULT_TIMEZONE
    return now.astimezone(ZoneInfo(timezone_name))
