"""Cron expression evaluation on top of APScheduler's CronTrigger."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger as APCronTrigger

from guildflow.errors import InvalidRecurrenceError

if TYPE_CHECKING:
    from apscheduler.triggers.base import BaseTrigger

# Crontab numbering: 0 (and 7) is Sunday
_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

# APScheduler expects weekday lists starting on Monday
_APS_WEEKDAY_ORDER = (1, 2, 3, 4, 5, 6, 0)

_UNRESTRICTED = ("*", "?")


def validate_timezone(name: str) -> str:
    """Check that a timezone name is a known IANA zone.

    Args:
        name: Timezone name such as "UTC" or "Europe/Berlin".

    Returns:
        The timezone name unchanged.

    Raises:
        InvalidRecurrenceError: If the zone is unknown.
    """
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        msg = f"Unknown timezone: {name}"
        raise InvalidRecurrenceError(msg, context={"timezone": name}) from e
    return name


def _weekday_number(token: str) -> int:
    token = token.strip().lower()
    if token in _CRON_WEEKDAYS:
        return _CRON_WEEKDAYS.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token)
    msg = f"Invalid day-of-week value: {token!r}"
    raise ValueError(msg)


def _expand_weekday_part(part: str) -> set[int]:
    step = 1
    has_step = "/" in part
    if has_step:
        part, step_text = part.split("/", 1)
        if not step_text.isdigit() or int(step_text) == 0:
            msg = f"Invalid day-of-week step: {step_text!r}"
            raise ValueError(msg)
        step = int(step_text)

    if part in ("*", "?"):
        start, end = 0, 6
    elif "-" in part:
        first, last = part.split("-", 1)
        start, end = _weekday_number(first), _weekday_number(last)
        if start > end:
            msg = f"Invalid day-of-week range: {part!r}"
            raise ValueError(msg)
    else:
        start = _weekday_number(part)
        end = 7 if has_step else start

    return {day % 7 for day in range(start, end + 1, step)}


def translate_day_of_week(field: str) -> str:
    """Translate a crontab day-of-week field into APScheduler syntax.

    Crontab counts weekdays from Sunday (0 or 7) while APScheduler counts
    from Monday, so numeric fields, ranges and steps are expanded into an
    explicit list of weekday names.

    Args:
        field: The fifth field of a crontab expression.

    Returns:
        An equivalent APScheduler day_of_week value.

    Raises:
        ValueError: If the field cannot be parsed.
    """
    if field in ("*", "?"):
        return "*"

    days: set[int] = set()
    for part in field.split(","):
        if not part:
            msg = f"Invalid day-of-week field: {field!r}"
            raise ValueError(msg)
        days |= _expand_weekday_part(part)

    return ",".join(_CRON_WEEKDAYS[day] for day in _APS_WEEKDAY_ORDER if day in days)


def parse_cron(expression: str, timezone: str = "UTC") -> BaseTrigger:
    """Parse a five-field cron expression into an APScheduler trigger.

    When both day-of-month and day-of-week are restricted, a day matches if
    either field matches, as in crontab. That case is built as an OrTrigger
    of two CronTriggers, one per day field.

    Args:
        expression: Cron expression (minute hour day month day_of_week).
        timezone: IANA timezone used to resolve fire times.

    Returns:
        APScheduler CronTrigger, or OrTrigger for the either-day case.

    Raises:
        InvalidRecurrenceError: If the expression or timezone is invalid.
    """
    validate_timezone(timezone)

    parts = expression.split()
    if len(parts) != 5:
        msg = f"Invalid cron expression: {expression!r}. Expected 5 fields, got {len(parts)}."
        raise InvalidRecurrenceError(msg, context={"cron_expression": expression})

    minute, hour, day, month, day_of_week = parts
    try:
        weekdays = translate_day_of_week(day_of_week)
        if day in _UNRESTRICTED or day_of_week in _UNRESTRICTED:
            day = "*" if day == "?" else day
            return APCronTrigger(
                minute=minute,
                hour=hour,
                day=day,
                month=month,
                day_of_week=weekdays,
                timezone=timezone,
            )
        return OrTrigger(
            [
                APCronTrigger(
                    minute=minute, hour=hour, day=day, month=month, timezone=timezone
                ),
                APCronTrigger(
                    minute=minute,
                    hour=hour,
                    month=month,
                    day_of_week=weekdays,
                    timezone=timezone,
                ),
            ]
        )
    except ValueError as e:
        msg = f"Invalid cron expression: {expression!r}: {e}"
        raise InvalidRecurrenceError(msg, context={"cron_expression": expression}) from e


def next_fire_time(
    expression: str,
    timezone: str = "UTC",
    after: datetime | None = None,
) -> datetime:
    """Get the earliest instant matching a cron expression strictly after a time.

    Args:
        expression: Cron expression (5 fields).
        timezone: IANA timezone used to resolve fire times.
        after: Reference instant (defaults to now). Naive values are taken as UTC.

    Returns:
        The next fire time as an aware UTC datetime.

    Raises:
        InvalidRecurrenceError: If the expression is invalid or never fires.
    """
    trigger = parse_cron(expression, timezone)
    return _next_after(trigger, expression, after or datetime.now(UTC))


def upcoming_fire_times(
    expression: str,
    timezone: str = "UTC",
    after: datetime | None = None,
    count: int = 3,
) -> list[datetime]:
    """Get the next few fire times of a cron expression.

    Args:
        expression: Cron expression (5 fields).
        timezone: IANA timezone used to resolve fire times.
        after: Reference instant (defaults to now).
        count: Number of fire times to return.

    Returns:
        List of aware UTC datetimes in ascending order.
    """
    trigger = parse_cron(expression, timezone)
    current = after or datetime.now(UTC)
    times: list[datetime] = []
    for _ in range(count):
        current = _next_after(trigger, expression, current)
        times.append(current)
    return times


def _next_after(trigger: BaseTrigger, expression: str, after: datetime) -> datetime:
    if after.tzinfo is None:
        after = after.replace(tzinfo=UTC)

    # Passing the reference as the previous fire time excludes it from the result
    fire_time = trigger.get_next_fire_time(after, after)
    if fire_time is None:
        msg = f"Cron expression never fires: {expression!r}"
        raise InvalidRecurrenceError(msg, context={"cron_expression": expression})
    return fire_time.astimezone(UTC)
