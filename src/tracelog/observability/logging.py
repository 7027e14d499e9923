"""Structured logging configuration.

Features:
- JSON and text format support
- Console and rotating file output (gzip, age-based pruning)
- Caller location and error stack traces
- Request ID correlation
- Service context injection
- Timezone-aware timestamps
"""

import gzip
import logging
import os
import shutil
import sys
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from structlog.types import EventDict, Processor

from tracelog.config import LogFormat, LogLevel, Settings, get_settings

# Context variables for request tracking
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    """Correlation identifiers of the request being served."""

    request_id: str | None = None
    user_id: str | None = None
    trace_id: str | None = None

    def as_fields(self) -> dict[str, str]:
        """Return the non-empty identifiers as log fields."""
        fields = {}
        if self.request_id:
            fields["request_id"] = self.request_id
        if self.user_id:
            fields["user_id"] = self.user_id
        if self.trace_id:
            fields["trace_id"] = self.trace_id
        return fields


def current_request_context() -> RequestContext:
    """Build a RequestContext from the current context variables."""
    return RequestContext(
        request_id=request_id_var.get(),
        user_id=user_id_var.get(),
        trace_id=trace_id_var.get(),
    )


def add_request_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add request context from context variables."""
    for key, value in current_request_context().as_fields().items():
        event_dict.setdefault(key, value)
    return event_dict


def add_error_stack(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Request a stack trace for error events that carry no exception."""
    if method_name in ("error", "critical") and not event_dict.get("exc_info"):
        event_dict.setdefault("stack_info", True)
    return event_dict


class ServiceContext:
    """Processor adding service name, version and environment."""

    def __init__(self, service: str, version: str, environment: str):
        self._fields = {
            "service": service,
            "version": version,
            "environment": environment,
        }

    def __call__(
        self,
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        for key, value in self._fields.items():
            if value:
                event_dict.setdefault(key, value)
        return event_dict


class TimeStamper:
    """Processor adding an ISO 8601 timestamp in the configured timezone."""

    def __init__(self, tz: timezone | ZoneInfo):
        self._tz = tz

    def __call__(
        self,
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["timestamp"] = datetime.now(self._tz).isoformat(timespec="milliseconds")
        return event_dict


def _resolve_timezone(name: str) -> timezone | ZoneInfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def _gzip_name(name: str) -> str:
    return name + ".gz"


def _gzip_rotate(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


class LogFileHandler(RotatingFileHandler):
    """Size-rotated log file with optional gzip and age-based pruning.

    Rotated files are named ``<file>.1``, ``<file>.2``... (``.gz`` appended
    when compressing). On every rollover, rotated files older than
    ``max_age_days`` are deleted.
    """

    def __init__(
        self,
        filename: str,
        max_bytes: int,
        backup_count: int,
        max_age_days: int = 0,
        compress: bool = False,
    ):
        super().__init__(
            filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.max_age_days = max_age_days
        if compress:
            self.namer = _gzip_name
            self.rotator = _gzip_rotate

    def doRollover(self) -> None:
        super().doRollover()
        if self.max_age_days > 0:
            self.prune()

    def prune(self) -> None:
        """Delete rotated files older than max_age_days."""
        cutoff = time.time() - self.max_age_days * 86400
        current = Path(self.baseFilename)
        for rotated in current.parent.glob(current.name + ".*"):
            if rotated.stat().st_mtime < cutoff:
                rotated.unlink(missing_ok=True)


def _build_handlers(settings: Settings, fmt: LogFormat) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if settings.log_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if settings.log_file_path:
        file_handler = LogFileHandler(
            settings.log_file_path,
            max_bytes=settings.log_file_max_mb * 1024 * 1024,
            backup_count=settings.log_file_backups,
            max_age_days=settings.log_file_max_age_days,
            compress=settings.log_file_compress,
        )
        # Files are always machine readable
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        handlers.append(file_handler)

    # If no output configured, default to console
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    console_renderer: Processor
    if fmt == LogFormat.JSON:
        console_renderer = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    for handler in handlers:
        if handler.formatter is None:
            handler.setFormatter(
                structlog.stdlib.ProcessorFormatter(
                    processors=[
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        console_renderer,
                    ],
                )
            )
    return handlers


def setup_logging(
    settings: Settings | None = None,
    log_level: LogLevel | str | None = None,
    log_format: LogFormat | str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        settings: Settings to use (defaults to get_settings())
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = settings or get_settings()

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    # Convert LogLevel enum to logging constant (handle both enum and string)
    level_str = level.value if isinstance(level, LogLevel) else str(level).upper()
    numeric_level = logging.getLevelName(level_str)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    fmt_str = fmt.value if isinstance(fmt, LogFormat) else str(fmt).lower()
    fmt = LogFormat.JSON if fmt_str == LogFormat.JSON.value else LogFormat.TEXT

    # Configure standard library logging
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(settings, fmt):
        root.addHandler(handler)
    root.setLevel(numeric_level)

    # Shared processors for both JSON and text formats
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        TimeStamper(_resolve_timezone(settings.log_timezone)),
        ServiceContext(
            settings.app_name,
            settings.app_version,
            settings.environment.value,
        ),
        add_request_context,
    ]
    if settings.log_caller:
        shared_processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )
    if settings.log_error_stack:
        shared_processors.append(add_error_stack)
    shared_processors += [
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class RequestContextManager:
    """Context manager for request-scoped logging context.

    Usage:
        with RequestContextManager(request_id="abc123", user_id="42"):
            logger.info("Processing request")  # Includes request_id and user_id
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | None = None,
        trace_id: str | None = None,
    ):
        self.context = RequestContext(
            request_id=request_id,
            user_id=user_id,
            trace_id=trace_id,
        )
        self._tokens: list[tuple[ContextVar[str | None], Token[str | None]]] = []

    @classmethod
    def from_context(cls, context: RequestContext) -> "RequestContextManager":
        return cls(
            request_id=context.request_id,
            user_id=context.user_id,
            trace_id=context.trace_id,
        )

    def __enter__(self) -> RequestContext:
        for var, value in (
            (request_id_var, self.context.request_id),
            (user_id_var, self.context.user_id),
            (trace_id_var, self.context.trace_id),
        ):
            if value:
                self._tokens.append((var, var.set(value)))
        return self.context

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    async def __aenter__(self) -> RequestContext:
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
