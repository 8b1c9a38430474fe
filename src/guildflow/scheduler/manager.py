"""Schedule manager for cron-based workflow triggers."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from guildflow.cron import upcoming_fire_times
from guildflow.errors import (
    InvalidRecurrenceError,
    InvocationResult,
    OperationResult,
    ScheduleResult,
    UpstreamUnavailableError,
    not_found,
)
from guildflow.models import ScheduleEntry, merge_recurrence, parse_recurrence
from guildflow.storage import TriggerKind

from .wakeups import APSchedulerWakeups, Wakeups

if TYPE_CHECKING:
    from guildflow.client import WorkflowInvoker
    from guildflow.models import RecurrenceModel
    from guildflow.storage import StoredTrigger, TriggerStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ScheduleManager:
    """Owns recurring schedules and fires their workflows.

    Each schedule has exactly one pending wake-up. When it fires, the
    workflow is invoked and the schedule re-arms itself for the next cron
    match, whether or not the invocation succeeded.
    """

    def __init__(
        self,
        invoker: WorkflowInvoker,
        store: TriggerStore | None = None,
        wakeups: Wakeups | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            invoker: Client used to request workflow executions.
            store: Optional trigger store. Without one, schedules live in memory only.
            wakeups: Wake-up primitive. Defaults to an APScheduler-backed one.
            clock: Source of the current time. Defaults to the system clock in UTC.
        """
        self._invoker = invoker
        self._store = store
        self._wakeups = wakeups or APSchedulerWakeups()
        self._clock = clock or _utcnow
        self._schedules: dict[str, ScheduleEntry] = {}
        self._started = False

    @property
    def is_running(self) -> bool:
        """Check if the manager has been started."""
        return self._started

    @property
    def schedule_count(self) -> int:
        """Number of schedules currently owned."""
        return len(self._schedules)

    async def start(self) -> None:
        """Start wake-ups and load persisted schedules.

        Rows that fail to parse are logged and skipped. If the store cannot
        be read, the manager keeps running with an empty schedule set.
        """
        if self._started:
            return

        self._wakeups.start()
        self._started = True

        if self._store is None:
            logger.warning("No trigger store configured, schedules are kept in memory only")
            return

        try:
            rows = self._store.load_active(TriggerKind.SCHEDULE)
        except UpstreamUnavailableError as e:
            logger.warning(f"Could not load persisted schedules, continuing empty: {e}")
            return

        now = self._clock()
        loaded = 0
        for row in rows:
            entry = self._restore(row, now)
            if entry is None:
                continue
            self._schedules[entry.id] = entry
            self._arm(entry)
            self._persist(entry)
            loaded += 1

        logger.info(f"Loaded {loaded} of {len(rows)} persisted schedules")

    def _restore(self, row: StoredTrigger, now: datetime) -> ScheduleEntry | None:
        try:
            return ScheduleEntry.from_config(row.id, row.workflow_id, row.config, now)
        except (InvalidRecurrenceError, ValueError) as e:
            logger.error(f"Skipping schedule {row.id} for workflow {row.workflow_id}: {e}")
            return None

    async def create_schedule(
        self,
        workflow_id: str,
        recurrence: Mapping[str, Any] | RecurrenceModel,
    ) -> ScheduleResult:
        """Create a schedule and arm its first wake-up.

        Args:
            workflow_id: Workflow to trigger.
            recurrence: Recurrence configuration (mapping or model).

        Returns:
            ScheduleResult with the new id and first fire time.
        """
        try:
            parsed = parse_recurrence(recurrence)
            draft = ScheduleEntry.build("", workflow_id, parsed, self._clock())
        except InvalidRecurrenceError as e:
            logger.error(f"Rejected schedule for workflow {workflow_id}: {e}")
            return ScheduleResult.failed(e)

        schedule_id = self._insert(workflow_id, draft)
        entry = draft.model_copy(update={"id": schedule_id})

        self._schedules[schedule_id] = entry
        self._arm(entry)

        logger.info(
            f"Created schedule {schedule_id} for workflow {workflow_id} "
            f"({entry.cron_expression} {entry.timezone})"
        )
        return ScheduleResult(success=True, id=schedule_id, next_execution=entry.next_execution)

    def _insert(self, workflow_id: str, draft: ScheduleEntry) -> str:
        if self._store is not None:
            try:
                row = self._store.insert(workflow_id, TriggerKind.SCHEDULE, draft.to_config())
            except UpstreamUnavailableError as e:
                logger.warning(f"Schedule for workflow {workflow_id} will not survive restart: {e}")
            else:
                return row.id
        return f"schedule-{uuid.uuid4()}"

    async def update_schedule(
        self,
        schedule_id: str,
        recurrence: Mapping[str, Any],
    ) -> ScheduleResult:
        """Merge a partial recurrence into a schedule and re-arm it.

        Args:
            schedule_id: Schedule to update.
            recurrence: Fields to change; the frequency may change too.

        Returns:
            ScheduleResult with the recomputed next fire time.
        """
        current = self._schedules.get(schedule_id)
        if current is None:
            return ScheduleResult.failed(not_found("Schedule", schedule_id))

        if not isinstance(recurrence, Mapping):
            error = InvalidRecurrenceError(
                f"Recurrence update must be a mapping, got {type(recurrence).__name__}"
            )
            return ScheduleResult.failed(error)

        try:
            merged = merge_recurrence(current.recurrence, recurrence)
            updated = ScheduleEntry.build(
                schedule_id,
                current.workflow_id,
                merged,
                self._clock(),
                last_execution=current.last_execution,
            )
        except InvalidRecurrenceError as e:
            logger.error(f"Rejected update for schedule {schedule_id}: {e}")
            return ScheduleResult.failed(e)

        self._schedules[schedule_id] = updated
        self._arm(updated)
        self._persist(updated)

        logger.info(
            f"Updated schedule {schedule_id} ({updated.cron_expression} {updated.timezone})"
        )
        return ScheduleResult(success=True, id=schedule_id, next_execution=updated.next_execution)

    async def delete_schedule(self, schedule_id: str) -> OperationResult:
        """Cancel a schedule and remove its persisted row.

        The row is deleted first. If the store fails, the call returns
        UpstreamUnavailable and the schedule stays armed. Rows of other
        trigger kinds are never touched.

        Returns:
            OperationResult; NotFound if neither memory nor the store knew the id.
        """
        removed = False
        if self._store is not None:
            try:
                removed = self._store.delete(schedule_id, TriggerKind.SCHEDULE)
            except UpstreamUnavailableError as e:
                logger.error(f"Could not delete schedule {schedule_id}, keeping it armed: {e}")
                return OperationResult.failed(e)

        self._wakeups.cancel(schedule_id)
        entry = self._schedules.pop(schedule_id, None)

        if entry is None and not removed:
            return OperationResult.failed(not_found("Schedule", schedule_id))

        logger.info(f"Deleted schedule {schedule_id}")
        return OperationResult.ok()

    async def trigger_now(self, schedule_id: str) -> OperationResult:
        """Fire a schedule's workflow immediately.

        The pending wake-up and next_execution are left untouched.

        Returns:
            OperationResult reflecting the invocation outcome.
        """
        entry = self._schedules.get(schedule_id)
        if entry is None:
            return OperationResult.failed(not_found("Schedule", schedule_id))

        fired_at = self._clock()
        logger.info(f"Manually triggering schedule {schedule_id} (workflow {entry.workflow_id})")
        result = await self._invoke(entry, fired_at)

        if result.success:
            current = self._schedules.get(schedule_id)
            if current is not None:
                current.last_execution = fired_at
                self._persist(current)
            return OperationResult.ok()

        return OperationResult(success=False, error=result.error)

    def get_schedule(self, schedule_id: str) -> ScheduleEntry | None:
        """Return a copy of an in-memory schedule, or None."""
        entry = self._schedules.get(schedule_id)
        return entry.model_copy() if entry else None

    async def list_schedules_for_workflow(self, workflow_id: str) -> list[ScheduleEntry]:
        """List schedules attached to a workflow, soonest first.

        In-memory entries win; persisted rows the manager does not own are
        included with a freshly computed next execution.
        """
        entries = {
            entry.id: entry.model_copy()
            for entry in self._schedules.values()
            if entry.workflow_id == workflow_id
        }

        if self._store is not None:
            try:
                rows = self._store.list_for_workflow(workflow_id, TriggerKind.SCHEDULE)
            except UpstreamUnavailableError:
                rows = []
            now = self._clock()
            for row in rows:
                if row.id in entries:
                    continue
                restored = self._restore(row, now)
                if restored is not None:
                    entries[row.id] = restored

        return sorted(entries.values(), key=lambda e: e.next_execution)

    async def shutdown(self) -> None:
        """Cancel every wake-up and forget all schedules."""
        self._wakeups.cancel_all()
        self._schedules.clear()
        self._wakeups.shutdown()
        self._started = False
        logger.info("Schedule manager stopped")

    def _arm(self, entry: ScheduleEntry) -> None:
        self._wakeups.arm(entry.id, entry.next_execution, self._fire, entry.id)

        delay = (entry.next_execution - self._clock()).total_seconds()
        logger.info(
            f"Schedule {entry.id} fires in {max(delay, 0):.0f}s "
            f"at {entry.next_execution.isoformat()}"
        )
        if logger.isEnabledFor(logging.DEBUG):
            upcoming = upcoming_fire_times(
                entry.cron_expression, entry.timezone, entry.next_execution, count=3
            )
            logger.debug(
                f"Schedule {entry.id} afterwards: {', '.join(t.isoformat() for t in upcoming)}"
            )

    def _persist(self, entry: ScheduleEntry) -> None:
        if self._store is None:
            return
        try:
            if not self._store.update_config(entry.id, entry.to_config()):
                logger.debug(f"Schedule {entry.id} has no persisted row")
        except UpstreamUnavailableError as e:
            logger.warning(f"Could not persist schedule {entry.id}: {e}")

    async def _invoke(self, entry: ScheduleEntry, scheduled_time: datetime) -> InvocationResult:
        try:
            result = await self._invoker.execute_schedule(
                entry.workflow_id, entry.id, scheduled_time
            )
        except Exception as e:
            logger.exception(f"Invoker raised for schedule {entry.id}")
            error = UpstreamUnavailableError(str(e), context={"schedule_id": entry.id})
            return InvocationResult(success=False, error=error)

        if result.success:
            logger.info(
                f"Workflow {entry.workflow_id} started by schedule {entry.id} "
                f"(execution {result.execution_id})"
            )
        else:
            logger.error(
                f"Workflow {entry.workflow_id} failed to start from schedule {entry.id}: "
                f"{result.error}"
            )
        return result

    async def _fire(self, schedule_id: str) -> None:
        """Wake-up callback: invoke the workflow, then re-arm.

        A wake-up that arrives after its schedule was deleted or replaced
        does nothing once the invocation returns.
        """
        entry = self._schedules.get(schedule_id)
        if entry is None:
            logger.warning(f"Ignoring wake-up for unknown schedule {schedule_id}")
            return

        scheduled_time = entry.next_execution
        fired_at = self._clock()
        result = await self._invoke(entry, scheduled_time)

        if self._schedules.get(schedule_id) is not entry:
            logger.info(f"Schedule {schedule_id} changed while firing, not re-arming")
            return

        if result.success:
            entry.last_execution = fired_at

        entry.advance(max(self._clock(), scheduled_time))
        self._persist(entry)
        self._arm(entry)
