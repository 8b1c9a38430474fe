"""In-process event relay with filtered workflow triggers."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from guildflow.errors import (
    InvalidFilterError,
    ListenerError,
    OperationResult,
    TriggerResult,
    UpstreamUnavailableError,
    not_found,
)
from guildflow.models import GENERIC_DATABASE_EVENT, Event, EventTriggerEntry, build_filter
from guildflow.storage import TriggerKind

if TYPE_CHECKING:
    from guildflow.client import WorkflowInvoker
    from guildflow.models import ChangeNotification
    from guildflow.storage import StoredTrigger, TriggerStore

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


@dataclass(eq=False)
class _Registration:
    """One call to on(); compared by identity."""

    event_type: str
    callback: Listener


class EventRelay:
    """Routes emitted events to listeners and workflow triggers.

    Delivery is in-process, at-most-once and best effort. Listeners run in
    registration order; a failing listener is logged and skipped. Listeners
    that return awaitables are scheduled on the running event loop.
    """

    def __init__(
        self,
        invoker: WorkflowInvoker | None = None,
        store: TriggerStore | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            invoker: Client used by event triggers to request executions.
            store: Optional trigger store for event trigger registrations.
        """
        self._invoker = invoker
        self._store = store
        self._listeners: dict[str, list[_Registration]] = {}
        self._triggers: dict[str, tuple[EventTriggerEntry, Callable[[], None]]] = {}
        self._pending: set[asyncio.Task[Any]] = set()

    def on(self, event_type: str, callback: Listener) -> Callable[[], None]:
        """Register a listener for an event type.

        Args:
            event_type: Event type to listen for.
            callback: Called with the emitted data.

        Returns:
            A function that removes exactly this registration.
        """
        registration = _Registration(event_type, callback)
        self._listeners.setdefault(event_type, []).append(registration)

        def unregister() -> None:
            listeners = self._listeners.get(event_type, [])
            for index, candidate in enumerate(listeners):
                if candidate is registration:
                    del listeners[index]
                    break
            if not listeners:
                self._listeners.pop(event_type, None)

        return unregister

    def listener_count(self, event_type: str | None = None) -> int:
        """Count listeners for one event type, or for all types."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    @property
    def event_types(self) -> list[str]:
        """Event types with at least one listener."""
        return sorted(self._listeners)

    @property
    def pending_tasks(self) -> int:
        """Number of listener coroutines still running."""
        return len(self._pending)

    def emit(self, event_type: str, data: Any = None) -> None:
        """Deliver data to every listener registered for `event_type`.

        Listeners registered while this call is running are not visited.
        Listener errors are logged and never propagate to the caller.
        """
        listeners = list(self._listeners.get(event_type, []))
        logger.debug(f"Emitting {event_type} to {len(listeners)} listener(s)")

        for registration in listeners:
            try:
                result = registration.callback(data)
            except Exception as e:
                self._report(event_type, e)
                continue

            if inspect.isawaitable(result):
                self._schedule(event_type, result)

    def _schedule(self, event_type: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._report(event_type, e)
            return

        task = asyncio.ensure_future(awaitable, loop=loop)

        self._pending.add(task)
        task.add_done_callback(lambda t: self._finished(event_type, t))

    def _finished(self, event_type: str, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._report(event_type, error)

    def _report(self, event_type: str, error: BaseException) -> None:
        wrapped = ListenerError(
            f"Listener for {event_type} raised {type(error).__name__}: {error}",
            context={"event_type": event_type},
        )
        logger.error(str(wrapped), exc_info=error)

    async def drain(self) -> None:
        """Wait until every scheduled listener coroutine has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def handle_database_event(self, semantic_type: str, notification: ChangeNotification) -> Event:
        """Emit a row change on its semantic type and on the generic type.

        Args:
            semantic_type: Event type such as "guild.created".
            notification: The row change.

        Returns:
            The event delivered to listeners.
        """
        if notification.new is not None:
            payload: Any = notification.new
        else:
            payload = notification.model_dump(by_alias=True)

        event = Event(
            type=semantic_type,
            payload=payload,
            source="database",
            table=notification.table,
            operation=notification.event,
        )
        logger.info(
            f"Database change on {notification.table} ({notification.event}) -> {semantic_type}"
        )

        self.emit(semantic_type, event)
        self.emit(GENERIC_DATABASE_EVENT, event)
        return event

    async def register_event_trigger(
        self,
        workflow_id: str,
        event_type: str,
        filter: Any = None,
    ) -> TriggerResult:
        """Run a workflow whenever a matching event is emitted.

        Args:
            workflow_id: Workflow to trigger.
            event_type: Event type to listen for.
            filter: Dotted-path conditions or a record filter; None matches all.

        Returns:
            TriggerResult with the trigger id.
        """
        try:
            event_filter = build_filter(filter)
        except InvalidFilterError as e:
            logger.error(f"Rejected event trigger for workflow {workflow_id}: {e}")
            return TriggerResult.failed(e)

        draft = EventTriggerEntry(
            id="",
            workflow_id=workflow_id,
            event_type=event_type,
            filter=event_filter,
        )
        trigger_id = self._insert(draft)
        entry = draft.model_copy(update={"id": trigger_id})
        self._attach(entry)

        logger.info(
            f"Registered event trigger {trigger_id}: {event_type} -> workflow {workflow_id}"
        )
        return TriggerResult(success=True, id=trigger_id)

    def _insert(self, draft: EventTriggerEntry) -> str:
        if self._store is not None:
            try:
                row = self._store.insert(draft.workflow_id, TriggerKind.EVENT, draft.to_config())
            except UpstreamUnavailableError as e:
                logger.warning(
                    f"Event trigger for {draft.workflow_id} will not survive restart: {e}"
                )
            else:
                return row.id
        return f"event-trigger-{uuid.uuid4()}"

    def _attach(self, entry: EventTriggerEntry) -> None:
        def listener(data: Any) -> Any:
            if not entry.filter.matches(data):
                return None
            return self._run_trigger(entry, data)

        unregister = self.on(entry.event_type, listener)
        self._triggers[entry.id] = (entry, unregister)

    async def _run_trigger(self, entry: EventTriggerEntry, data: Any) -> None:
        if self._invoker is None:
            logger.warning(f"Event trigger {entry.id} matched but no workflow endpoint is set")
            return

        result = await self._invoker.execute_event(entry.workflow_id, data)
        if result.success:
            logger.info(
                f"Workflow {entry.workflow_id} started by event {entry.event_type} "
                f"(execution {result.execution_id})"
            )
        else:
            logger.error(
                f"Workflow {entry.workflow_id} failed to start from event {entry.event_type}: "
                f"{result.error}"
            )

    async def delete_event_trigger(self, trigger_id: str) -> OperationResult:
        """Remove an event trigger and its persisted row.

        The row is deleted first; if the store fails the listener stays
        installed. Rows of other trigger kinds are never touched.
        """
        removed = False
        if self._store is not None:
            try:
                removed = self._store.delete(trigger_id, TriggerKind.EVENT)
            except UpstreamUnavailableError as e:
                logger.error(f"Could not delete event trigger {trigger_id}, keeping it: {e}")
                return OperationResult.failed(e)

        attached = self._triggers.pop(trigger_id, None)
        if attached is not None:
            _, unregister = attached
            unregister()

        if attached is None and not removed:
            return OperationResult.failed(not_found("Event trigger", trigger_id))

        logger.info(f"Deleted event trigger {trigger_id}")
        return OperationResult.ok()

    def list_event_triggers(self, workflow_id: str | None = None) -> list[EventTriggerEntry]:
        """List installed event triggers, optionally for one workflow."""
        return [
            entry
            for entry, _ in self._triggers.values()
            if workflow_id is None or entry.workflow_id == workflow_id
        ]

    async def restore_triggers(self) -> int:
        """Re-install listeners for persisted event triggers.

        Returns:
            Number of triggers installed.
        """
        if self._store is None:
            return 0

        try:
            rows = self._store.load_active(TriggerKind.EVENT)
        except UpstreamUnavailableError as e:
            logger.warning(f"Could not load persisted event triggers: {e}")
            return 0

        restored = 0
        for row in rows:
            if row.id in self._triggers:
                continue
            entry = self._restore(row)
            if entry is not None:
                self._attach(entry)
                restored += 1

        logger.info(f"Restored {restored} of {len(rows)} persisted event triggers")
        return restored

    def _restore(self, row: StoredTrigger) -> EventTriggerEntry | None:
        event_type = row.config.get("event_type") or row.config.get("eventType")
        if not event_type:
            logger.error(f"Skipping event trigger {row.id}: no event type")
            return None
        try:
            event_filter = build_filter(row.config.get("filter"))
        except InvalidFilterError as e:
            logger.error(f"Skipping event trigger {row.id}: {e}")
            return None
        return EventTriggerEntry(
            id=row.id,
            workflow_id=row.workflow_id,
            event_type=event_type,
            filter=event_filter,
        )

    async def shutdown(self) -> None:
        """Drop every registration and cancel running listener coroutines."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()
        self._listeners.clear()
        self._triggers.clear()
        logger.info("Event relay stopped")
