"""Event endpoints for GuildFlow API.

Manual emissions, event trigger registration, and ingestion of database
change notifications.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

from fastapi import APIRouter, Body, Header, HTTPException, Request
from pydantic import ValidationError

from guildflow.api.dependencies import ERROR_RESPONSES, Service, raise_for_result
from guildflow.api.schemas import (
    ChangeAccepted,
    EventEmitted,
    EventTriggerCreate,
    EventTriggerDetail,
    MessageResponse,
)
from guildflow.models import ChangeNotification

logger = logging.getLogger(__name__)
router = APIRouter(responses=ERROR_RESPONSES)


def _verify_signature(body: bytes, secret: str, signature: str) -> bool:
    """Verify HMAC signature (GitHub style).

    Args:
        body: Request body bytes.
        secret: The secret key.
        signature: The signature header value.

    Returns:
        True if signature is valid.
    """
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

    # Handle both 'sha256=xxx' and plain 'xxx' formats
    if signature.startswith("sha256="):
        signature = signature[7:]

    return hmac.compare_digest(expected, signature)


def _authenticate(
    body: bytes,
    secret: str,
    provided_secret: str | None,
    signature: str | None,
) -> None:
    if provided_secret:
        if not hmac.compare_digest(provided_secret, secret):
            logger.warning("Invalid secret on change notification")
            raise HTTPException(status_code=401, detail="Invalid secret")
    elif signature:
        if not _verify_signature(body, secret, signature):
            logger.warning("Invalid signature on change notification")
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logger.warning("Missing authentication on change notification")
        raise HTTPException(status_code=401, detail="Authentication required")


@router.post("/events/changes", response_model=ChangeAccepted, status_code=202)
async def ingest_change(
    service: Service,
    request: Request,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
) -> ChangeAccepted:
    """Ingest a database change notification.

    Args:
        service: The trigger service.
        request: The FastAPI request object.
        x_webhook_secret: Simple secret header.
        x_hub_signature_256: GitHub-style HMAC signature header.

    Returns:
        The event types emitted for the change.

    Raises:
        HTTPException: If authentication fails, the body is not a change
            notification, or the feed is not connected.
    """
    body = await request.body()

    secret = service.settings.webhook_secret
    if secret:
        _authenticate(body, secret, x_webhook_secret, x_hub_signature_256)

    try:
        notification = ChangeNotification.model_validate_json(body)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        raise HTTPException(status_code=422, detail=errors) from e

    if not service.feed.connected:
        raise HTTPException(status_code=503, detail="Change feed is not connected")

    events = service.feed.handle(notification)
    return ChangeAccepted(events=[event.type for event in events])


@router.post("/events/{event_type}", response_model=EventEmitted, status_code=202)
async def emit_event(
    service: Service,
    event_type: str,
    data: Any = Body(None),
) -> EventEmitted:
    """Emit an event to every listener registered for its type.

    Args:
        service: The trigger service.
        event_type: Event type to emit.
        data: Event data delivered to listeners.

    Returns:
        The number of listeners notified.
    """
    listeners = service.events.listener_count(event_type)
    service.events.emit(event_type, data)
    logger.info(f"Manual event {event_type} emitted to {listeners} listener(s)")
    return EventEmitted(event_type=event_type, listeners=listeners)


@router.post("/event-triggers", response_model=EventTriggerDetail, status_code=201)
async def register_event_trigger(
    service: Service,
    request: EventTriggerCreate,
) -> EventTriggerDetail:
    """Run a workflow whenever a matching event is emitted."""
    result = await service.events.register_event_trigger(
        request.workflow_id,
        request.event_type,
        request.filter,
    )
    raise_for_result(result)
    for entry in service.events.list_event_triggers(request.workflow_id):
        if entry.id == result.id:
            return EventTriggerDetail.from_entry(entry)
    raise HTTPException(status_code=500, detail="Event trigger vanished after registration")


@router.delete("/event-triggers/{trigger_id}", response_model=MessageResponse)
async def delete_event_trigger(service: Service, trigger_id: str) -> MessageResponse:
    """Remove an event trigger."""
    raise_for_result(await service.events.delete_event_trigger(trigger_id))
    return MessageResponse(message=f"Event trigger {trigger_id} deleted")


@router.get("/workflows/{workflow_id}/event-triggers", response_model=list[EventTriggerDetail])
async def list_workflow_event_triggers(
    service: Service,
    workflow_id: str,
) -> list[EventTriggerDetail]:
    """List the event triggers attached to a workflow."""
    return [
        EventTriggerDetail.from_entry(entry)
        for entry in service.events.list_event_triggers(workflow_id)
    ]
