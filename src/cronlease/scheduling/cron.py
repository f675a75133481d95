"""Cron evaluation.

Given a cron expression, an IANA timezone and a reference instant,
``next_fire_after`` returns the next instant strictly after the reference
at which the task should run, as an aware UTC datetime. Evaluation happens
in local wall time of the zone so expressions like ``0 5 * * *`` follow
daylight-saving shifts.

Tags:
    cronlease, scheduling, cron, croniter, timezone
"""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadCronError, CroniterBadDateError, croniter

from cronlease.core.errors import ScheduleParseError
from cronlease.core.timestamps import ensure_utc

DISPLAY_FORMAT = "%Y.%m.%d %I:%M:%S %p"


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleParseError(timezone, f"Unknown timezone: {timezone!r}", cause=exc) from exc


def validate_schedule(expression: str) -> None:
    """Raise ``ScheduleParseError`` unless ``expression`` is a valid cron string."""
    if not isinstance(expression, str) or not croniter.is_valid(expression):
        raise ScheduleParseError(str(expression))


def next_fire_after(expression: str, timezone: str, reference: datetime) -> datetime:
    """Next fire time strictly after ``reference``.

    Args:
        expression: Cron expression (5 fields, or 6 with seconds)
        timezone: IANA zone used to interpret the expression
        reference: Instant to search from (naive values are taken as UTC)

    Returns:
        Next fire time in UTC

    Raises:
        ScheduleParseError: Malformed expression or unknown timezone
    """
    validate_schedule(expression)
    tz = _zone(timezone)
    local_reference = ensure_utc(reference).astimezone(tz)

    try:
        next_local = croniter(expression, local_reference).get_next(datetime)
    except (CroniterBadCronError, CroniterBadDateError, ValueError, KeyError) as exc:
        raise ScheduleParseError(expression, cause=exc) from exc

    if next_local.tzinfo is None:
        next_local = next_local.replace(tzinfo=tz)
    return next_local.astimezone(UTC)


def format_time(instant: datetime, timezone: str) -> str:
    """Human-readable instant in ``timezone`` for log lines."""
    return ensure_utc(instant).astimezone(_zone(timezone)).strftime(DISPLAY_FORMAT)


class CronAdapter:
    """Cron evaluation bound to one timezone.

    The scheduler holds one of these; tests can swap in a stub with the
    same ``next_fire_after`` signature.

    Example:
        >>> cron = CronAdapter("UTC")
        >>> cron.next_fire_after("0 5 * * *", datetime(2025, 2, 1, tzinfo=UTC))
        datetime.datetime(2025, 2, 1, 5, 0, tzinfo=datetime.timezone.utc)
    """

    def __init__(self, timezone: str = "UTC") -> None:
        _zone(timezone)
        self.timezone = timezone

    def validate(self, expression: str) -> None:
        validate_schedule(expression)

    def next_fire_after(self, expression: str, reference: datetime) -> datetime:
        return next_fire_after(expression, self.timezone, reference)

    def format(self, instant: datetime) -> str:
        return format_time(instant, self.timezone)
