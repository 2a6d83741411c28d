"""Core export job logic: exceptions and the job lifecycle state machine.

The job service lives in :mod:`wasilah.core.service`.
"""

from .exceptions import (
    ExportCancelled,
    ExportError,
    ExportErrorCode,
    ExportValidationError,
    PersistenceError,
    RenderError,
    StateTransitionError,
)
from .state import TRANSITIONS, JobStateMachine

__all__ = [
    # Exceptions
    "ExportError",
    "ExportErrorCode",
    "ExportValidationError",
    "RenderError",
    "PersistenceError",
    "StateTransitionError",
    "ExportCancelled",
    # State machine
    "TRANSITIONS",
    "JobStateMachine",
]
