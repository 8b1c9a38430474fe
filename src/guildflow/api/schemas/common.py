"""Common API schemas for GuildFlow."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """A failed operation's message and error code."""

    message: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code, e.g. 'not_found'")


class ErrorResponse(BaseModel):
    """Error response for failed schedule and trigger operations."""

    detail: ErrorDetail


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str = Field(..., description="Response message")
