"""HTTP middleware."""

from .request_logging import (
    InterceptedExchange,
    RequestLoggingMiddleware,
    get_request_id,
    report_error,
)

__all__ = [
    "InterceptedExchange",
    "RequestLoggingMiddleware",
    "get_request_id",
    "report_error",
]
