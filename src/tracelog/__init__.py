"""Structured request and SQL logging for ASGI services.

- RequestLoggingMiddleware: request/response logging with correlation IDs
  and masked bodies
- QueryLogger / instrument_engine: SQLAlchemy statement logging with slow
  query detection
- setup_logging / get_logger: structlog configuration
"""

from tracelog.config import HTTPLoggingSettings, Settings, SQLLoggingSettings, get_settings
from tracelog.database import (
    QueryLogger,
    create_engine,
    create_session_factory,
    instrument_engine,
    uninstrument_engine,
)
from tracelog.middleware import RequestLoggingMiddleware, get_request_id, report_error
from tracelog.observability import (
    RequestContext,
    RequestContextManager,
    get_logger,
    setup_logging,
)
from tracelog.redaction import compile_rules, redact, redact_body
from tracelog.routing import Severity, Verbosity, route
from tracelog.sql import SQLOperation, classify

__version__ = "0.1.0"

__all__ = [
    "HTTPLoggingSettings",
    "QueryLogger",
    "RequestContext",
    "RequestContextManager",
    "RequestLoggingMiddleware",
    "SQLLoggingSettings",
    "SQLOperation",
    "Settings",
    "Severity",
    "Verbosity",
    "classify",
    "compile_rules",
    "create_engine",
    "create_session_factory",
    "get_logger",
    "get_request_id",
    "get_settings",
    "instrument_engine",
    "redact",
    "redact_body",
    "report_error",
    "route",
    "setup_logging",
    "uninstrument_engine",
]
