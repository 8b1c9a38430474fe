"""Shared dependencies for GuildFlow API."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from guildflow.api.schemas import ErrorDetail, ErrorResponse
from guildflow.errors import ErrorCode, OperationResult
from guildflow.service import GuildFlowService

_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_RECURRENCE: 422,
    ErrorCode.INVALID_FILTER: 422,
    ErrorCode.UPSTREAM_UNAVAILABLE: 502,
    ErrorCode.LISTENER_ERROR: 500,
}


def get_service(request: Request) -> GuildFlowService:
    """Get the trigger service from app state.

    Args:
        request: FastAPI request object.

    Returns:
        The GuildFlowService owned by the application.
    """
    service: GuildFlowService = request.app.state.service
    return service


def raise_for_result(result: OperationResult) -> None:
    """Turn a failed operation result into an HTTP error.

    Raises:
        HTTPException: If the result is a failure.
    """
    if result.success:
        return

    error = result.error
    if error is None:
        raise HTTPException(status_code=500, detail="Operation failed")
    raise HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, 500),
        detail=ErrorDetail(message=error.message, code=error.code.value).model_dump(),
    )


# OpenAPI documentation for routes that use raise_for_result
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "Unknown schedule or trigger"},
    502: {"model": ErrorResponse, "description": "Store or workflow endpoint unavailable"},
}


# Type alias for dependency injection
Service = Annotated[GuildFlowService, Depends(get_service)]
