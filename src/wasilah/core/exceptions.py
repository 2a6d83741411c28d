"""Export-specific exceptions."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ExportErrorCode(str, Enum):
    """Categorized error codes for export operations."""

    VALIDATION_FAILED = "validation_failed"
    RENDER_FAILED = "render_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    INVALID_TRANSITION = "invalid_transition"
    CANCELLED = "cancelled"


class ExportError(Exception):
    """Base exception for all export errors."""

    code: ExportErrorCode = ExportErrorCode.RENDER_FAILED

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to serializable dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ExportValidationError(ExportError):
    """Raised before any job exists when a request cannot be rendered."""

    code = ExportErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        super().__init__(message, {"problems": problems or [message]})
        self.problems = problems or [message]


class RenderError(ExportError):
    """Raised when an encoder or builder fails to produce an artifact."""

    code = ExportErrorCode.RENDER_FAILED

    def __init__(self, message: str, format: str | None = None) -> None:
        super().__init__(message, {"format": format} if format else None)
        self.format = format


class PersistenceError(ExportError):
    """Raised when the durable key-value store cannot be read or written."""

    code = ExportErrorCode.PERSISTENCE_FAILED


class StateTransitionError(ExportError):
    """Raised when an invalid job state transition is attempted."""

    code = ExportErrorCode.INVALID_TRANSITION

    def __init__(self, message: str, from_state: str, trigger: str) -> None:
        super().__init__(message, {"from_state": from_state, "trigger": trigger})
        self.from_state = from_state
        self.trigger = trigger


class ExportCancelled(ExportError):
    """Raised inside a running export once its job has been cancelled."""

    code = ExportErrorCode.CANCELLED
