"""Utility modules for the ERM service."""

from .logging import (
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    get_request_id,
    get_workspace_id,
    redact_sensitive_data,
    set_request_context,
    setup_logging,
    timed,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "get_request_id",
    "get_workspace_id",
    "Timer",
    "timed",
    "JSONFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
