"""HTTP client for the workflow execution endpoint."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from guildflow.errors import InvocationResult, UpstreamUnavailableError

if TYPE_CHECKING:
    from guildflow.models import Event

logger = logging.getLogger(__name__)

EXECUTE_PATH = "/api/workflow/execute"


class WorkflowClient:
    """Requests workflow executions from the orchestrator API.

    No timeout is applied: a slow call only delays the caller that awaits it.
    """

    def __init__(self, api_base_url: str, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the client.

        Args:
            api_base_url: Base URL of the orchestrator API.
            client: Optional pre-configured httpx client (owned by the caller).
        """
        self._url = api_base_url.rstrip("/") + EXECUTE_PATH
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        """Full URL of the execution endpoint."""
        return self._url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def execute_schedule(
        self,
        workflow_id: str,
        schedule_id: str,
        scheduled_time: datetime,
    ) -> InvocationResult:
        """Request an execution for a schedule fire.

        Args:
            workflow_id: Workflow to execute.
            schedule_id: Schedule that fired.
            scheduled_time: Instant the fire was due.

        Returns:
            InvocationResult describing the outcome.
        """
        body = {
            "workflowId": workflow_id,
            "trigger": {
                "type": "schedule",
                "scheduleId": schedule_id,
                "scheduled_time": scheduled_time.isoformat(),
            },
        }
        return await self._post(workflow_id, body)

    async def execute_event(self, workflow_id: str, event: Event | Any) -> InvocationResult:
        """Request an execution triggered by an event.

        Args:
            workflow_id: Workflow to execute.
            event: The matching event (or raw emitted data).

        Returns:
            InvocationResult describing the outcome.
        """
        event_data = event.model_dump(mode="json") if hasattr(event, "model_dump") else event
        body = {
            "workflowId": workflow_id,
            "trigger": {"type": "event", "event": event_data},
        }
        return await self._post(workflow_id, body)

    async def _post(self, workflow_id: str, body: dict[str, Any]) -> InvocationResult:
        logger.debug(f"Requesting execution of workflow {workflow_id} at {self._url}")
        try:
            response = await self._get_client().post(self._url, json=body)
        except httpx.HTTPError as e:
            error = UpstreamUnavailableError(
                f"Workflow endpoint unreachable: {e}",
                context={"workflow_id": workflow_id},
            )
            return InvocationResult(success=False, error=error)

        if not response.is_success:
            error = UpstreamUnavailableError(
                f"Workflow endpoint returned HTTP {response.status_code}: {response.reason_phrase}",
                context={"workflow_id": workflow_id, "body": response.text[:500]},
            )
            return InvocationResult(success=False, error=error, status_code=response.status_code)

        execution_id: str | None = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            raw_id = data.get("executionId") or data.get("execution_id")
            execution_id = str(raw_id) if raw_id is not None else None

        return InvocationResult(
            success=True,
            execution_id=execution_id,
            status_code=response.status_code,
        )


class WorkflowInvoker(Protocol):
    """Anything that can request workflow executions."""

    async def execute_schedule(
        self,
        workflow_id: str,
        schedule_id: str,
        scheduled_time: datetime,
    ) -> InvocationResult: ...

    async def execute_event(self, workflow_id: str, event: Any) -> InvocationResult: ...
