"""
Shared utilities module.
"""

from wasilah.utils.logging import (
    clear_execution_context,
    configure_from_settings,
    configure_logging,
    execution_context,
    get_logger,
    set_execution_context,
    timed_operation,
)

__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "set_execution_context",
    "clear_execution_context",
    "execution_context",
    "timed_operation",
]
