from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error payload for the HTTP side of the service.

    {
        "error": "internal_error",
        "message": "Internal server error",
        "code": 500,
        "details": {"error_id": "..."}
    }
    """

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


class AssistantError(RuntimeError):
    """Base class for errors raised by the assistant session core."""


class ThreadStoreError(AssistantError):
    """Raised when a thread cannot be persisted or read back."""

    def __init__(self, thread_id: str, message: str):
        self.thread_id = thread_id
        super().__init__(f"thread {thread_id}: {message}")


class ThreadNotFoundError(ThreadStoreError):
    """The thread key is missing or has expired."""

    def __init__(self, thread_id: str):
        super().__init__(thread_id, "not found or expired")


class ThreadDecodeError(ThreadStoreError):
    """The stored payload is not a valid transcript."""


class ChannelWriteError(AssistantError):
    """Raised when a frame cannot be written to the client connection."""


class ToolError(AssistantError):
    """Base class for tool dispatch failures; these never end a session."""


class UnknownToolError(ToolError):
    def __init__(self, name: str, reason: str = "no such tool"):
        self.name = name
        super().__init__(f"{reason}: {name}")


class ToolArgumentsError(ToolError):
    """The model supplied arguments the tool cannot use."""


__all__ = [
    "AssistantError",
    "ChannelWriteError",
    "ErrorResponse",
    "ThreadDecodeError",
    "ThreadNotFoundError",
    "ThreadStoreError",
    "ToolArgumentsError",
    "ToolError",
    "UnknownToolError",
]
