"""Error taxonomy and operation results for GuildFlow services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Self


class ErrorCode(str, Enum):
    """Classification of failures surfaced by the trigger services."""

    INVALID_RECURRENCE = "invalid_recurrence"  # Bad recurrence config or cron expression
    NOT_FOUND = "not_found"  # Unknown schedule or trigger id
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # Store or execution endpoint failing
    LISTENER_ERROR = "listener_error"  # Event listener raised during emit
    INVALID_FILTER = "invalid_filter"  # Event trigger filter cannot be interpreted


@dataclass
class GuildFlowError(Exception):
    """Base error with a code and context."""

    message: str
    code: ErrorCode
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class InvalidRecurrenceError(GuildFlowError):
    """Malformed or unrecognized recurrence configuration."""

    code: ErrorCode = ErrorCode.INVALID_RECURRENCE


@dataclass
class NotFoundError(GuildFlowError):
    """An operation referenced an unknown schedule or trigger."""

    code: ErrorCode = ErrorCode.NOT_FOUND


@dataclass
class UpstreamUnavailableError(GuildFlowError):
    """The persistence store or workflow endpoint is unreachable or erroring."""

    code: ErrorCode = ErrorCode.UPSTREAM_UNAVAILABLE


@dataclass
class InvalidFilterError(GuildFlowError):
    """An event trigger filter could not be interpreted."""

    code: ErrorCode = ErrorCode.INVALID_FILTER


@dataclass
class ListenerError(GuildFlowError):
    """A registered event listener raised while handling an event."""

    code: ErrorCode = ErrorCode.LISTENER_ERROR


def not_found(kind: str, item_id: str) -> NotFoundError:
    """Build a NotFoundError for a schedule or trigger id."""
    return NotFoundError(f"{kind} {item_id} not found", context={"id": item_id})


@dataclass
class OperationResult:
    """Outcome of a public service operation."""

    success: bool
    error: GuildFlowError | None = None

    @property
    def error_code(self) -> ErrorCode | None:
        """Code of the failure, if any."""
        return self.error.code if self.error else None

    @classmethod
    def ok(cls) -> Self:
        """Create a successful result."""
        return cls(success=True)

    @classmethod
    def failed(cls, error: GuildFlowError) -> Self:
        """Create a failed result."""
        return cls(success=False, error=error)


@dataclass
class ScheduleResult(OperationResult):
    """Outcome of creating or updating a schedule."""

    id: str = ""
    next_execution: datetime | None = None


@dataclass
class TriggerResult(OperationResult):
    """Outcome of registering an event trigger."""

    id: str = ""


@dataclass
class InvocationResult(OperationResult):
    """Outcome of a workflow execution request."""

    execution_id: str | None = None
    status_code: int | None = None
