"""Tests for the schedule manager."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from guildflow.cron import next_fire_time
from guildflow.errors import ErrorCode, InvocationResult, UpstreamUnavailableError
from guildflow.events import EventRelay
from guildflow.scheduler import ScheduleManager
from guildflow.storage import TriggerKind, TriggerStore

from .conftest import FailingDeleteStore, FakeInvoker, FakeWakeups, SimClock

DAILY_9AM = {"frequency": "daily", "time": "09:00"}


class BrokenStore:
    """Trigger store whose database is unreachable."""

    def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise UpstreamUnavailableError("database is down")

    insert = get = load_active = list_for_workflow = update_config = delete = _fail


@pytest.fixture
def manager(invoker: FakeInvoker, wakeups: FakeWakeups, clock: SimClock) -> ScheduleManager:
    """Create an in-memory schedule manager."""
    return ScheduleManager(invoker, wakeups=wakeups, clock=clock)


@pytest.fixture
def persistent_manager(
    invoker: FakeInvoker,
    store: TriggerStore,
    wakeups: FakeWakeups,
    clock: SimClock,
) -> ScheduleManager:
    """Create a schedule manager backed by the in-memory database."""
    return ScheduleManager(invoker, store=store, wakeups=wakeups, clock=clock)


class TestCreateSchedule:
    """Tests for create_schedule."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "recurrence",
        [
            {"frequency": "minutely"},
            {"frequency": "hourly"},
            {"frequency": "daily", "time": "09:00"},
            {"frequency": "weekly", "daysOfWeek": [0], "time": "07:45"},
            {"frequency": "monthly", "daysOfMonth": [31], "time": "23:59"},
            {"frequency": "custom", "cronExpression": "*/20 8-18 * * 1-5"},
            {"frequency": "daily", "time": "09:00", "timezone": "Australia/Sydney"},
        ],
    )
    async def test_next_execution_matches_cron(
        self,
        manager: ScheduleManager,
        wakeups: FakeWakeups,
        clock: SimClock,
        recurrence: dict,
    ) -> None:
        """Test that every kind schedules the next cron match after now."""
        result = await manager.create_schedule("wf-1", recurrence)

        assert result.success is True
        assert result.next_execution is not None
        assert result.next_execution > clock.now

        entry = manager.get_schedule(result.id)
        assert entry is not None
        assert result.next_execution == next_fire_time(
            entry.cron_expression, entry.timezone, clock.now
        )
        assert wakeups.when(result.id) == result.next_execution

    @pytest.mark.asyncio
    async def test_in_memory_id(self, manager: ScheduleManager) -> None:
        """Test that ids are generated without a store."""
        result = await manager.create_schedule("wf-1", DAILY_9AM)
        assert result.id.startswith("schedule-")

    @pytest.mark.asyncio
    async def test_invalid_recurrence(self, manager: ScheduleManager, wakeups: FakeWakeups) -> None:
        """Test that bad configs fail without side effects."""
        result = await manager.create_schedule("wf-1", {"frequency": "fortnightly"})

        assert result.success is False
        assert result.error_code == ErrorCode.INVALID_RECURRENCE
        assert manager.schedule_count == 0
        assert wakeups.armed == {}

    @pytest.mark.asyncio
    async def test_invalid_custom_cron(self, manager: ScheduleManager) -> None:
        """Test that unparseable custom expressions fail."""
        result = await manager.create_schedule(
            "wf-1", {"frequency": "custom", "cronExpression": "0 9 * *"}
        )
        assert result.error_code == ErrorCode.INVALID_RECURRENCE

    @pytest.mark.asyncio
    async def test_persists_row(
        self, persistent_manager: ScheduleManager, store: TriggerStore
    ) -> None:
        """Test that the store assigns the id and keeps the config."""
        result = await persistent_manager.create_schedule("wf-1", DAILY_9AM)

        row = store.get(result.id)
        assert row is not None
        assert row.workflow_id == "wf-1"
        assert row.kind == TriggerKind.SCHEDULE
        assert row.config["frequency"] == "daily"
        assert row.config["nextExecution"] == "2024-03-15T09:00:00+00:00"
        assert row.config["lastExecution"] is None

    @pytest.mark.asyncio
    async def test_store_down_falls_back_to_memory(
        self,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that an unavailable store does not block creation."""
        manager = ScheduleManager(invoker, store=BrokenStore(), wakeups=wakeups, clock=clock)

        result = await manager.create_schedule("wf-1", DAILY_9AM)

        assert result.success is True
        assert result.id.startswith("schedule-")
        assert wakeups.is_armed(result.id)


class TestFiring:
    """Tests for wake-up handling."""

    @pytest.mark.asyncio
    async def test_fire_invokes_and_rearms(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
    ) -> None:
        """Test a successful fire records the execution and advances."""
        result = await manager.create_schedule("wf-1", DAILY_9AM)
        nine_am = datetime(2024, 3, 15, 9, 0, tzinfo=UTC)

        await wakeups.fire(result.id)

        assert invoker.schedule_calls == [("wf-1", result.id, nine_am)]
        entry = manager.get_schedule(result.id)
        assert entry is not None
        assert entry.last_execution == nine_am
        assert entry.next_execution == nine_am + timedelta(days=1)
        assert wakeups.when(result.id) == entry.next_execution

    @pytest.mark.asyncio
    async def test_next_execution_never_repeats(
        self,
        manager: ScheduleManager,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that consecutive fires move strictly forward."""
        result = await manager.create_schedule("wf-1", {"frequency": "minutely"})

        seen = []
        for _ in range(5):
            seen.append(wakeups.when(result.id))
            await wakeups.fire(result.id)

        assert all(a < b for a, b in zip(seen, seen[1:], strict=False))
        assert seen[-1] == seen[0] + timedelta(minutes=4)

    @pytest.mark.asyncio
    async def test_failed_invocation_still_rearms(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that a failing endpoint does not stop the schedule."""
        invoker.succeed = False
        result = await manager.create_schedule("wf-1", DAILY_9AM)

        await wakeups.fire(result.id)

        entry = manager.get_schedule(result.id)
        assert entry is not None
        assert entry.last_execution is None
        assert wakeups.when(result.id) == datetime(2024, 3, 16, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_raising_invoker_still_rearms(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that an exception from the invoker is contained."""
        invoker.raise_error = RuntimeError("boom")
        result = await manager.create_schedule("wf-1", DAILY_9AM)

        await wakeups.fire(result.id)

        assert wakeups.is_armed(result.id)

    @pytest.mark.asyncio
    async def test_late_fire_skips_missed_runs(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that a late wake-up fires once and re-arms after now."""
        result = await manager.create_schedule("wf-1", {"frequency": "minutely"})
        clock.advance(minutes=10)

        await wakeups.fire(result.id)

        assert len(invoker.schedule_calls) == 1
        assert invoker.schedule_calls[0][2] == datetime(2024, 3, 15, 8, 1, tzinfo=UTC)
        assert wakeups.when(result.id) == datetime(2024, 3, 15, 8, 11, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_fire_persists_timestamps(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that the store sees the new timestamps after a fire."""
        result = await persistent_manager.create_schedule("wf-1", DAILY_9AM)

        await wakeups.fire(result.id)

        row = store.get(result.id)
        assert row is not None
        assert row.config["lastExecution"] == "2024-03-15T09:00:00+00:00"
        assert row.config["nextExecution"] == "2024-03-16T09:00:00+00:00"

    @pytest.mark.asyncio
    async def test_stale_wakeup_after_delete(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that a wake-up for a deleted schedule does nothing."""
        result = await manager.create_schedule("wf-1", DAILY_9AM)
        stale = wakeups.armed[result.id]

        await manager.delete_schedule(result.id)
        await stale.func(*stale.args)

        assert invoker.schedule_calls == []
        assert not wakeups.is_armed(result.id)
        assert manager.get_schedule(result.id) is None

    @pytest.mark.asyncio
    async def test_delete_during_invocation(
        self,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that deleting mid-fire prevents re-arming."""

        class DeletingInvoker(FakeInvoker):
            async def execute_schedule(
                self, workflow_id: str, schedule_id: str, scheduled_time: datetime
            ) -> InvocationResult:
                await manager.delete_schedule(schedule_id)
                return await super().execute_schedule(workflow_id, schedule_id, scheduled_time)

        manager = ScheduleManager(DeletingInvoker(), wakeups=wakeups, clock=clock)
        result = await manager.create_schedule("wf-1", DAILY_9AM)

        await wakeups.fire(result.id)

        assert manager.get_schedule(result.id) is None
        assert not wakeups.is_armed(result.id)

    @pytest.mark.asyncio
    async def test_update_during_invocation(
        self,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that an update made mid-fire is not overwritten."""

        class UpdatingInvoker(FakeInvoker):
            async def execute_schedule(
                self, workflow_id: str, schedule_id: str, scheduled_time: datetime
            ) -> InvocationResult:
                await manager.update_schedule(schedule_id, {"time": "17:30"})
                return await super().execute_schedule(workflow_id, schedule_id, scheduled_time)

        manager = ScheduleManager(UpdatingInvoker(), wakeups=wakeups, clock=clock)
        result = await manager.create_schedule("wf-1", DAILY_9AM)

        await wakeups.fire(result.id)

        entry = manager.get_schedule(result.id)
        assert entry is not None
        assert entry.cron_expression == "30 17 * * *"
        assert entry.next_execution == datetime(2024, 3, 15, 17, 30, tzinfo=UTC)
        assert wakeups.when(result.id) == entry.next_execution


class TestUpdateSchedule:
    """Tests for update_schedule."""

    @pytest.mark.asyncio
    async def test_unknown_id(self, manager: ScheduleManager) -> None:
        """Test that unknown ids fail without creating an entry."""
        result = await manager.update_schedule("missing", DAILY_9AM)

        assert result.success is False
        assert result.error_code == ErrorCode.NOT_FOUND
        assert manager.get_schedule("missing") is None
        assert manager.schedule_count == 0

    @pytest.mark.asyncio
    async def test_partial_update_rearms(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that a partial update recomputes and re-arms."""
        created = await persistent_manager.create_schedule("wf-1", DAILY_9AM)

        result = await persistent_manager.update_schedule(
            created.id, {"frequency": "weekly", "daysOfWeek": [1]}
        )

        monday_9am = datetime(2024, 3, 18, 9, 0, tzinfo=UTC)
        assert result.success is True
        assert result.next_execution == monday_9am
        assert wakeups.when(created.id) == monday_9am
        row = store.get(created.id)
        assert row is not None
        assert row.config["frequency"] == "weekly"
        assert row.config["nextExecution"] == monday_9am.isoformat()

    @pytest.mark.asyncio
    async def test_keeps_last_execution(
        self,
        manager: ScheduleManager,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that updates preserve the last execution."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        await wakeups.fire(created.id)

        await manager.update_schedule(created.id, {"time": "10:00"})

        entry = manager.get_schedule(created.id)
        assert entry is not None
        assert entry.last_execution == datetime(2024, 3, 15, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_invalid_update_keeps_entry(
        self,
        manager: ScheduleManager,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that a bad update leaves the schedule untouched."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)

        result = await manager.update_schedule(created.id, {"time": "99:99"})

        assert result.error_code == ErrorCode.INVALID_RECURRENCE
        entry = manager.get_schedule(created.id)
        assert entry is not None
        assert entry.cron_expression == "0 9 * * *"
        assert wakeups.when(created.id) == created.next_execution

    @pytest.mark.asyncio
    async def test_non_mapping_update(self, manager: ScheduleManager) -> None:
        """Test that updates must be mappings."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        result = await manager.update_schedule(created.id, "daily")  # type: ignore[arg-type]
        assert result.error_code == ErrorCode.INVALID_RECURRENCE


class TestDeleteSchedule:
    """Tests for delete_schedule."""

    @pytest.mark.asyncio
    async def test_delete(self, manager: ScheduleManager, wakeups: FakeWakeups) -> None:
        """Test that delete cancels and removes the schedule."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)

        result = await manager.delete_schedule(created.id)

        assert result.success is True
        assert not wakeups.is_armed(created.id)
        assert manager.get_schedule(created.id) is None

    @pytest.mark.asyncio
    async def test_delete_twice(self, manager: ScheduleManager) -> None:
        """Test that deleting again reports NotFound."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        await manager.delete_schedule(created.id)

        result = await manager.delete_schedule(created.id)

        assert result.success is False
        assert result.error_code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_removes_row(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
    ) -> None:
        """Test that the persisted row is removed."""
        created = await persistent_manager.create_schedule("wf-1", DAILY_9AM)

        await persistent_manager.delete_schedule(created.id)

        assert store.get(created.id) is None

    @pytest.mark.asyncio
    async def test_delete_row_not_loaded(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
    ) -> None:
        """Test deleting a persisted row the manager never loaded."""
        row = store.insert("wf-1", TriggerKind.SCHEDULE, DAILY_9AM)

        result = await persistent_manager.delete_schedule(row.id)

        assert result.success is True
        assert store.get(row.id) is None

    @pytest.mark.asyncio
    async def test_delete_ignores_event_trigger_ids(
        self,
        invoker: FakeInvoker,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
    ) -> None:
        """Test that an event trigger id is unknown to delete_schedule."""
        relay = EventRelay(invoker, store=store)
        trigger = await relay.register_event_trigger("wf-1", "guild.created")

        result = await persistent_manager.delete_schedule(trigger.id)

        assert result.error_code == ErrorCode.NOT_FOUND
        assert store.get(trigger.id) is not None
        assert [t.id for t in relay.list_event_triggers()] == [trigger.id]

    @pytest.mark.asyncio
    async def test_store_failure_keeps_schedule(
        self,
        invoker: FakeInvoker,
        store: TriggerStore,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that a failed row delete leaves the schedule armed and stored."""
        failing = FailingDeleteStore(store)
        manager = ScheduleManager(invoker, store=failing, wakeups=wakeups, clock=clock)
        created = await manager.create_schedule("wf-1", DAILY_9AM)

        result = await manager.delete_schedule(created.id)

        assert result.error_code == ErrorCode.UPSTREAM_UNAVAILABLE
        assert wakeups.is_armed(created.id)
        assert manager.get_schedule(created.id) is not None
        assert store.get(created.id) is not None


class TestTriggerNow:
    """Tests for trigger_now."""

    @pytest.mark.asyncio
    async def test_trigger_now(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test a manual fire updates only the last execution."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        clock.advance(minutes=5)

        result = await manager.trigger_now(created.id)

        assert result.success is True
        assert invoker.schedule_calls == [("wf-1", created.id, clock.now)]
        entry = manager.get_schedule(created.id)
        assert entry is not None
        assert entry.last_execution == clock.now
        assert entry.next_execution == created.next_execution
        assert wakeups.when(created.id) == created.next_execution

    @pytest.mark.asyncio
    async def test_trigger_after_delete(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
    ) -> None:
        """Test that a deleted schedule cannot be fired."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        await manager.delete_schedule(created.id)

        result = await manager.trigger_now(created.id)

        assert result.success is False
        assert result.error_code == ErrorCode.NOT_FOUND
        assert invoker.schedule_calls == []

    @pytest.mark.asyncio
    async def test_trigger_failure(
        self,
        manager: ScheduleManager,
        invoker: FakeInvoker,
    ) -> None:
        """Test that a failed invocation is reported."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        invoker.succeed = False

        result = await manager.trigger_now(created.id)

        assert result.success is False
        assert result.error_code == ErrorCode.UPSTREAM_UNAVAILABLE
        entry = manager.get_schedule(created.id)
        assert entry is not None
        assert entry.last_execution is None


class TestListSchedules:
    """Tests for list_schedules_for_workflow."""

    @pytest.mark.asyncio
    async def test_filters_and_orders(self, manager: ScheduleManager) -> None:
        """Test that only the workflow's schedules are listed, soonest first."""
        later = await manager.create_schedule("wf-1", {"frequency": "daily", "time": "20:00"})
        sooner = await manager.create_schedule("wf-1", {"frequency": "hourly"})
        await manager.create_schedule("wf-2", DAILY_9AM)

        entries = await manager.list_schedules_for_workflow("wf-1")

        assert [e.id for e in entries] == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_includes_persisted_rows(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
    ) -> None:
        """Test that rows the manager has not loaded are included."""
        created = await persistent_manager.create_schedule("wf-1", DAILY_9AM)
        row = store.insert("wf-1", TriggerKind.SCHEDULE, {"frequency": "minutely"})
        store.insert("wf-1", TriggerKind.SCHEDULE, {"frequency": "never"})

        entries = await persistent_manager.list_schedules_for_workflow("wf-1")

        assert {e.id for e in entries} == {created.id, row.id}

    @pytest.mark.asyncio
    async def test_returns_copies(self, manager: ScheduleManager) -> None:
        """Test that callers cannot mutate the manager's entries."""
        created = await manager.create_schedule("wf-1", DAILY_9AM)
        entries = await manager.list_schedules_for_workflow("wf-1")

        entries[0].last_execution = datetime(2000, 1, 1, tzinfo=UTC)

        entry = manager.get_schedule(created.id)
        assert entry is not None
        assert entry.last_execution is None


class TestLifecycle:
    """Tests for start and shutdown."""

    @pytest.mark.asyncio
    async def test_start_reloads_valid_rows(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
        wakeups: FakeWakeups,
    ) -> None:
        """Test that valid rows are re-armed and bad rows skipped."""
        good = store.insert(
            "wf-1",
            TriggerKind.SCHEDULE,
            {**DAILY_9AM, "lastExecution": "2024-03-14T09:00:00+00:00"},
        )
        bad = store.insert("wf-1", TriggerKind.SCHEDULE, {"frequency": "yearly"})
        garbled = store.insert(
            "wf-2", TriggerKind.SCHEDULE, {"frequency": "hourly", "lastExecution": "soon"}
        )
        store.insert("wf-3", TriggerKind.EVENT, {"event_type": "x", "filter": {}})

        await persistent_manager.start()

        assert persistent_manager.is_running is True
        assert persistent_manager.schedule_count == 1
        assert wakeups.when(good.id) == datetime(2024, 3, 15, 9, 0, tzinfo=UTC)
        assert not wakeups.is_armed(bad.id)
        assert not wakeups.is_armed(garbled.id)

        entry = persistent_manager.get_schedule(good.id)
        assert entry is not None
        assert entry.last_execution == datetime(2024, 3, 14, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_start_with_store_down(
        self,
        invoker: FakeInvoker,
        wakeups: FakeWakeups,
        clock: SimClock,
    ) -> None:
        """Test that an unreadable store leaves an empty running manager."""
        manager = ScheduleManager(invoker, store=BrokenStore(), wakeups=wakeups, clock=clock)

        await manager.start()

        assert manager.is_running is True
        assert manager.schedule_count == 0

    @pytest.mark.asyncio
    async def test_start_idempotent(
        self,
        persistent_manager: ScheduleManager,
        store: TriggerStore,
    ) -> None:
        """Test that a second start does not reload."""
        store.insert("wf-1", TriggerKind.SCHEDULE, DAILY_9AM)

        await persistent_manager.start()
        await persistent_manager.start()

        assert persistent_manager.schedule_count == 1

    @pytest.mark.asyncio
    async def test_shutdown(self, manager: ScheduleManager, wakeups: FakeWakeups) -> None:
        """Test that shutdown cancels everything and is idempotent."""
        await manager.start()
        await manager.create_schedule("wf-1", DAILY_9AM)
        await manager.create_schedule("wf-2", {"frequency": "hourly"})

        await manager.shutdown()
        await manager.shutdown()

        assert wakeups.armed == {}
        assert wakeups.running is False
        assert manager.schedule_count == 0
        assert manager.is_running is False
