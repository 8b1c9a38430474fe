"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from guildflow.errors import InvocationResult, UpstreamUnavailableError
from guildflow.storage import Database, TriggerKind, TriggerStore

# Friday
START = datetime(2024, 3, 15, 8, 0, 0, tzinfo=UTC)


class SimClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when


@dataclass
class ArmedWakeup:
    when: datetime
    func: Callable[..., Awaitable[None]]
    args: tuple[Any, ...]


class FakeWakeups:
    """In-memory wake-ups driven by the test through fire()."""

    def __init__(self, clock: SimClock | None = None) -> None:
        self.clock = clock
        self.armed: dict[str, ArmedWakeup] = {}
        self.running = False

    def start(self) -> None:
        self.running = True

    def arm(
        self, key: str, when: datetime, func: Callable[..., Awaitable[None]], *args: Any
    ) -> None:
        self.armed[key] = ArmedWakeup(when, func, args)

    def cancel(self, key: str) -> bool:
        return self.armed.pop(key, None) is not None

    def cancel_all(self) -> None:
        self.armed.clear()

    def is_armed(self, key: str) -> bool:
        return key in self.armed

    def shutdown(self) -> None:
        self.running = False

    def when(self, key: str) -> datetime:
        return self.armed[key].when

    async def fire(self, key: str) -> None:
        """Run the wake-up for `key`, moving the clock to its due time."""
        wakeup = self.armed.pop(key)
        if self.clock is not None and wakeup.when > self.clock.now:
            self.clock.set(wakeup.when)
        await wakeup.func(*wakeup.args)


class FailingDeleteStore:
    """Trigger store whose deletes fail while everything else works."""

    def __init__(self, store: TriggerStore) -> None:
        self._store = store

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)

    def delete(self, trigger_id: str, kind: TriggerKind) -> bool:
        raise UpstreamUnavailableError("database is read-only")


@dataclass
class FakeInvoker:
    """Records workflow execution requests."""

    succeed: bool = True
    raise_error: Exception | None = None
    schedule_calls: list[tuple[str, str, datetime]] = field(default_factory=list)
    event_calls: list[tuple[str, Any]] = field(default_factory=list)

    def _result(self) -> InvocationResult:
        if self.raise_error is not None:
            raise self.raise_error
        if self.succeed:
            return InvocationResult(success=True, execution_id="exec-1", status_code=200)
        return InvocationResult(
            success=False,
            error=UpstreamUnavailableError("Workflow endpoint returned HTTP 500"),
            status_code=500,
        )

    async def execute_schedule(
        self, workflow_id: str, schedule_id: str, scheduled_time: datetime
    ) -> InvocationResult:
        self.schedule_calls.append((workflow_id, schedule_id, scheduled_time))
        return self._result()

    async def execute_event(self, workflow_id: str, event: Any) -> InvocationResult:
        self.event_calls.append((workflow_id, event))
        return self._result()


@pytest.fixture
def clock() -> SimClock:
    """Create a clock fixed at a Friday morning."""
    return SimClock()


@pytest.fixture
def wakeups(clock: SimClock) -> FakeWakeups:
    """Create fake wake-ups bound to the test clock."""
    return FakeWakeups(clock)


@pytest.fixture
def invoker() -> FakeInvoker:
    """Create a recording workflow invoker."""
    return FakeInvoker()


@pytest.fixture
def db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def store(db: Database) -> TriggerStore:
    """Create a trigger store on the in-memory database."""
    return TriggerStore(db)


@pytest.fixture
def isolated_home(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point HOME at a temp dir and clear GuildFlow environment variables."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in (
        "GUILDFLOW_API_BASE_URL",
        "API_BASE_URL",
        "GUILDFLOW_DATABASE_URL",
        "GUILDFLOW_WEBHOOK_SECRET",
        "GUILDFLOW_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
