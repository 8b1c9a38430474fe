"""Schedule endpoints for GuildFlow API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body

from guildflow.api.dependencies import ERROR_RESPONSES, Service, raise_for_result
from guildflow.api.schemas import MessageResponse, ScheduleCreate, ScheduleCreated, ScheduleDetail
from guildflow.errors import OperationResult, not_found

logger = logging.getLogger(__name__)
router = APIRouter(responses=ERROR_RESPONSES)


@router.post("/schedules", response_model=ScheduleCreated, status_code=201)
async def create_schedule(service: Service, request: ScheduleCreate) -> ScheduleCreated:
    """Create a recurring schedule for a workflow.

    Args:
        service: The trigger service.
        request: Workflow id and recurrence configuration.

    Returns:
        The new schedule id and its first fire time.
    """
    result = await service.schedules.create_schedule(request.workflow_id, request.recurrence)
    raise_for_result(result)
    return ScheduleCreated(id=result.id, next_execution=result.next_execution)


@router.get("/schedules/{schedule_id}", response_model=ScheduleDetail)
async def get_schedule(service: Service, schedule_id: str) -> ScheduleDetail:
    """Get a schedule by id."""
    entry = service.schedules.get_schedule(schedule_id)
    if entry is None:
        raise_for_result(OperationResult.failed(not_found("Schedule", schedule_id)))
    return ScheduleDetail.from_entry(entry)


@router.patch("/schedules/{schedule_id}", response_model=ScheduleCreated)
async def update_schedule(
    service: Service,
    schedule_id: str,
    recurrence: dict[str, Any] = Body(..., description="Recurrence fields to change"),
) -> ScheduleCreated:
    """Merge recurrence changes into a schedule.

    Args:
        service: The trigger service.
        schedule_id: Schedule to update.
        recurrence: Partial recurrence configuration.

    Returns:
        The schedule id and its recomputed next fire time.
    """
    result = await service.schedules.update_schedule(schedule_id, recurrence)
    raise_for_result(result)
    return ScheduleCreated(id=result.id, next_execution=result.next_execution)


@router.delete("/schedules/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(service: Service, schedule_id: str) -> MessageResponse:
    """Delete a schedule."""
    raise_for_result(await service.schedules.delete_schedule(schedule_id))
    return MessageResponse(message=f"Schedule {schedule_id} deleted")


@router.post("/schedules/{schedule_id}/trigger", response_model=MessageResponse)
async def trigger_schedule(service: Service, schedule_id: str) -> MessageResponse:
    """Fire a schedule's workflow now, outside its cron cadence."""
    raise_for_result(await service.schedules.trigger_now(schedule_id))
    return MessageResponse(message=f"Schedule {schedule_id} triggered")


@router.get("/workflows/{workflow_id}/schedules", response_model=list[ScheduleDetail])
async def list_workflow_schedules(service: Service, workflow_id: str) -> list[ScheduleDetail]:
    """List the schedules attached to a workflow, soonest first."""
    entries = await service.schedules.list_schedules_for_workflow(workflow_id)
    return [ScheduleDetail.from_entry(entry) for entry in entries]
