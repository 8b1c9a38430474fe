"""Recurrence configuration models for GuildFlow schedules."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from guildflow.cron import parse_cron, validate_timezone
from guildflow.errors import InvalidRecurrenceError

FREQUENCIES = ("minutely", "hourly", "daily", "weekly", "monthly", "custom")

DEFAULT_TIME = "09:00"
DEFAULT_CUSTOM_CRON = "0 9 * * 1-5"  # 9 AM on weekdays

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")

# Python attribute name -> persisted (camelCase) key
_WIRE_KEYS = {
    "days_of_week": "daysOfWeek",
    "days_of_month": "daysOfMonth",
    "cron_expression": "cronExpression",
}


def _split_time(value: str) -> tuple[int, int]:
    match = _TIME_PATTERN.fullmatch(value)
    if not match:
        msg = f"Invalid time format: {value!r}. Use HH:MM"
        raise ValueError(msg)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        msg = f"Invalid time of day: {value!r}"
        raise ValueError(msg)
    return hour, minute


class _RecurrenceBase(BaseModel):
    """Fields shared by every recurrence kind."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    timezone: str = Field(default="UTC", description="IANA timezone for fire times")

    @field_validator("timezone")
    @classmethod
    def validate_timezone_name(cls, v: str) -> str:
        """Reject unknown timezone names."""
        try:
            return validate_timezone(v)
        except InvalidRecurrenceError as e:
            raise ValueError(e.message) from e

    def to_cron(self) -> str:
        """Lower the recurrence into a five-field cron expression."""
        raise NotImplementedError

    def to_config(self) -> dict[str, Any]:
        """Return the persisted (camelCase) form of this recurrence."""
        return self.model_dump(by_alias=True, mode="json")


class _TimedRecurrence(_RecurrenceBase):
    """Recurrence that fires at a time of day."""

    time: str = Field(default=DEFAULT_TIME, description="Time of day as HH:MM")

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        _split_time(v)
        return v

    @property
    def hour(self) -> int:
        return _split_time(self.time)[0]

    @property
    def minute(self) -> int:
        return _split_time(self.time)[1]


class MinutelyRecurrence(_RecurrenceBase):
    """Fire every minute."""

    frequency: Literal["minutely"]

    def to_cron(self) -> str:
        return "* * * * *"


class HourlyRecurrence(_RecurrenceBase):
    """Fire at the top of every hour."""

    frequency: Literal["hourly"]

    def to_cron(self) -> str:
        return "0 * * * *"


class DailyRecurrence(_TimedRecurrence):
    """Fire once a day at a fixed time."""

    frequency: Literal["daily"]

    def to_cron(self) -> str:
        return f"{self.minute} {self.hour} * * *"


class WeeklyRecurrence(_TimedRecurrence):
    """Fire once a week on the first listed weekday."""

    frequency: Literal["weekly"]
    days_of_week: list[int] = Field(
        default_factory=lambda: [1],
        alias="daysOfWeek",
        description="Weekdays, 0-6 for Sunday-Saturday (7 is also Sunday)",
    )

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v: list[int]) -> list[int]:
        """Ensure weekdays are in crontab range."""
        for day in v:
            if not 0 <= day <= 7:
                msg = f"Day of week out of range (0-7): {day}"
                raise ValueError(msg)
        return v

    def to_cron(self) -> str:
        day = self.days_of_week[0] if self.days_of_week else 1  # Monday
        return f"{self.minute} {self.hour} * * {day}"


class MonthlyRecurrence(_TimedRecurrence):
    """Fire once a month on the first listed day of the month."""

    frequency: Literal["monthly"]
    days_of_month: list[int] = Field(
        default_factory=lambda: [1],
        alias="daysOfMonth",
        description="Days of the month, 1-31",
    )

    @field_validator("days_of_month")
    @classmethod
    def validate_days_of_month(cls, v: list[int]) -> list[int]:
        """Ensure days are valid calendar days."""
        for day in v:
            if not 1 <= day <= 31:
                msg = f"Day of month out of range (1-31): {day}"
                raise ValueError(msg)
        return v

    def to_cron(self) -> str:
        day = self.days_of_month[0] if self.days_of_month else 1
        return f"{self.minute} {self.hour} {day} * *"


class CustomRecurrence(_RecurrenceBase):
    """Fire on a caller-supplied cron expression."""

    frequency: Literal["custom"]
    cron_expression: str = Field(default=DEFAULT_CUSTOM_CRON, alias="cronExpression")

    @field_validator("cron_expression", mode="before")
    @classmethod
    def default_blank_expression(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CUSTOM_CRON
        return v

    @model_validator(mode="after")
    def validate_expression(self) -> CustomRecurrence:
        """Parse the expression so bad cron strings fail at construction."""
        try:
            parse_cron(self.cron_expression, self.timezone)
        except InvalidRecurrenceError as e:
            raise ValueError(e.message) from e
        return self

    def to_cron(self) -> str:
        return " ".join(self.cron_expression.split())


Recurrence = Annotated[
    MinutelyRecurrence
    | HourlyRecurrence
    | DailyRecurrence
    | WeeklyRecurrence
    | MonthlyRecurrence
    | CustomRecurrence,
    Field(discriminator="frequency"),
]

RecurrenceModel = _RecurrenceBase

_recurrence_adapter: TypeAdapter[Recurrence] = TypeAdapter(Recurrence)


def _wire_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_WIRE_KEYS.get(key, key): value for key, value in data.items()}


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"][1:]) or "config"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def parse_recurrence(data: Mapping[str, Any] | RecurrenceModel) -> RecurrenceModel:
    """Build a recurrence variant from its configuration.

    Args:
        data: Recurrence mapping (camelCase or snake_case keys) or a model.

    Returns:
        The validated recurrence variant.

    Raises:
        InvalidRecurrenceError: If the frequency is unknown or a field is invalid.
    """
    if isinstance(data, _RecurrenceBase):
        return data

    if not isinstance(data, Mapping):
        msg = f"Recurrence config must be a mapping, got {type(data).__name__}"
        raise InvalidRecurrenceError(msg)

    frequency = data.get("frequency")
    if frequency not in FREQUENCIES:
        msg = f"Unknown frequency: {frequency!r}"
        raise InvalidRecurrenceError(msg, context={"frequency": frequency})

    try:
        return _recurrence_adapter.validate_python(_wire_keys(data))
    except ValidationError as e:
        msg = f"Invalid {frequency} recurrence: {_summarize(e)}"
        raise InvalidRecurrenceError(msg, context={"frequency": frequency}) from e
    except ValueError as e:
        msg = f"Invalid {frequency} recurrence: {e}"
        raise InvalidRecurrenceError(msg, context={"frequency": frequency}) from e


def merge_recurrence(
    current: RecurrenceModel,
    partial: Mapping[str, Any],
) -> RecurrenceModel:
    """Overlay a partial configuration on an existing recurrence.

    Args:
        current: The recurrence currently in effect.
        partial: Fields to change; may switch the frequency.

    Returns:
        The validated merged recurrence.

    Raises:
        InvalidRecurrenceError: If the merged configuration is invalid.
    """
    merged = {**current.to_config(), **_wire_keys(partial)}
    return parse_recurrence(merged)
