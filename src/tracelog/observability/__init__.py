"""Observability module for structured logging and request context."""

from .logging import (
    LogFileHandler,
    RequestContext,
    RequestContextManager,
    current_request_context,
    get_logger,
    request_id_var,
    setup_logging,
    trace_id_var,
    user_id_var,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "LogFileHandler",
    # Context
    "RequestContext",
    "RequestContextManager",
    "current_request_context",
    "request_id_var",
    "user_id_var",
    "trace_id_var",
]
