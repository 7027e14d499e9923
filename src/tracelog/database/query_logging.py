"""SQL statement logging.

QueryLogger turns one executed statement into one log event: failed
statements are logged as errors, statements slower than the configured
threshold as warnings and everything else at info, subject to the
configured verbosity. instrument_engine() hooks it into a SQLAlchemy engine.

Usage:
    engine = create_async_engine(url)
    instrument_engine(engine, QueryLogger(SQLLoggingSettings(slow_threshold_ms=100)))
"""

from __future__ import annotations

import sys
import time
import weakref
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncEngine

from tracelog.config import SQLLoggingSettings
from tracelog.observability import RequestContext, current_request_context, get_logger
from tracelog.routing import Severity, Verbosity, route
from tracelog.sql import SQLOperation, classify

# Returns (sql, rows_affected); only called when an event is emitted
QueryAccessor = Callable[[], tuple[str, int]]

TRACE_MESSAGES = {
    Severity.INFO: "Database query executed",
    Severity.WARNING: "Slow database query detected",
    Severity.ERROR: "Database query failed",
}

_START_KEY = "tracelog_query_start"


# Frames from these packages are skipped when locating the statement's caller
_INTERNAL_PACKAGES = ("tracelog", "sqlalchemy", "contextlib", "asyncio")


def find_caller() -> str:
    """Return ``file:line`` of the first frame outside the database stack."""
    frame = sys._getframe(1)
    while frame is not None:
        module = frame.f_globals.get("__name__", "")
        if not any(module == p or module.startswith(p + ".") for p in _INTERNAL_PACKAGES):
            return f"{frame.f_code.co_filename}:{frame.f_lineno}"
        frame = frame.f_back
    return ""


def is_record_not_found(error: BaseException) -> bool:
    """Default ignorable-error predicate."""
    return isinstance(error, NoResultFound)


@dataclass
class SQLEvent:
    """A single executed statement."""

    sql: str
    operation: SQLOperation
    table: str
    duration_ms: float
    rows_affected: int
    slow_threshold_ms: float
    error: BaseException | None = None
    caller: str = ""

    @property
    def slow(self) -> bool:
        return self.duration_ms > self.slow_threshold_ms

    def as_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "operation": self.operation.value,
            "table": self.table,
            "duration_ms": round(self.duration_ms, 2),
            "rows_affected": self.rows_affected,
            "slow_query": self.slow,
            "sql": self.sql,
        }
        if self.caller:
            fields["caller"] = self.caller
        if self.error is not None:
            fields["error"] = str(self.error)
            fields["error_type"] = type(self.error).__name__
        return fields


class QueryLogger:
    """Logs executed SQL statements with timing and classification."""

    def __init__(
        self,
        settings: SQLLoggingSettings | None = None,
        logger: Any = None,
        is_ignorable: Callable[[BaseException], bool] | None = None,
    ):
        self.settings = settings or SQLLoggingSettings()
        self.logger = logger or get_logger("tracelog.sql")
        if is_ignorable is None and self.settings.ignore_record_not_found:
            is_ignorable = is_record_not_found
        self.is_ignorable = is_ignorable

    def with_verbosity(self, level: Verbosity) -> QueryLogger:
        """Return a copy of this logger with a different verbosity."""
        settings = self.settings.model_copy(update={"level": level})
        return QueryLogger(settings, self.logger, self.is_ignorable)

    def trace(
        self,
        start: float,
        fc: QueryAccessor,
        error: BaseException | None = None,
        context: RequestContext | None = None,
    ) -> None:
        """Log a statement that started at ``start`` (a perf_counter value).

        Never raises; failures to read or classify the statement degrade the
        event instead.
        """
        if self.settings.level == Verbosity.SILENT:
            return
        try:
            self._trace(start, fc, error, context)
        except Exception as e:
            self.logger.warning("Query logging failed", error=str(e))

    def _trace(
        self,
        start: float,
        fc: QueryAccessor,
        error: BaseException | None,
        context: RequestContext | None,
    ) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        severity = route(
            duration_ms,
            self.settings.slow_threshold_ms,
            error,
            is_ignorable=self._is_ignorable,
            verbosity=self.settings.level,
        )
        if severity is None:
            return

        try:
            sql, rows = fc()
        except Exception:
            sql, rows = "", -1
        operation, table = classify(sql)

        sql_event = SQLEvent(
            sql=sql,
            operation=operation,
            table=table,
            duration_ms=duration_ms,
            rows_affected=rows,
            slow_threshold_ms=self.settings.slow_threshold_ms,
            error=error,
            caller=find_caller(),
        )
        fields = sql_event.as_fields()
        context = context or current_request_context()
        fields.update(context.as_fields())

        getattr(self.logger, severity.value)(TRACE_MESSAGES[severity], **fields)

    def _is_ignorable(self, error: BaseException) -> bool:
        if self.is_ignorable is None:
            return False
        try:
            return bool(self.is_ignorable(error))
        except Exception:
            return False

    @contextmanager
    def observe(
        self, fc: QueryAccessor, context: RequestContext | None = None
    ) -> Iterator[None]:
        """Time a block of database work and log it as one statement.

        Exceptions raised in the block are logged and re-raised unchanged.

        Usage:
            with query_logger.observe(lambda: (str(stmt), 1)):
                user = (await session.execute(stmt)).scalar_one()
        """
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.trace(start, fc, e, context)
            raise
        self.trace(start, fc, None, context)


class _EngineListeners:
    """SQLAlchemy event handlers feeding a QueryLogger."""

    def __init__(self, query_logger: QueryLogger):
        self.query_logger = query_logger

    def before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    def after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        start = _pop_start(conn)
        if start is None:
            return
        self.query_logger.trace(start, lambda: (statement, cursor.rowcount))

    def handle_error(self, exception_context):
        conn = exception_context.connection
        start = _pop_start(conn) if conn is not None else None
        if start is None:
            return
        statement = exception_context.statement or ""
        self.query_logger.trace(
            start,
            lambda: (statement, -1),
            exception_context.original_exception,
        )


def _pop_start(conn) -> float | None:
    stack = conn.info.get(_START_KEY)
    if not stack:
        return None
    return stack.pop()


_instrumented: weakref.WeakKeyDictionary[Engine, _EngineListeners] = weakref.WeakKeyDictionary()


def _sync_engine(engine: Engine | AsyncEngine) -> Engine:
    if isinstance(engine, AsyncEngine):
        return engine.sync_engine
    return engine


def instrument_engine(
    engine: Engine | AsyncEngine,
    query_logger: QueryLogger | None = None,
) -> QueryLogger:
    """Log every statement executed through ``engine``.

    Args:
        engine: Sync engine or AsyncEngine
        query_logger: Logger to use (defaults to QueryLogger())

    Returns:
        The QueryLogger receiving the statements
    """
    sync_engine = _sync_engine(engine)
    uninstrument_engine(sync_engine)

    listeners = _EngineListeners(query_logger or QueryLogger())
    event.listen(sync_engine, "before_cursor_execute", listeners.before_cursor_execute)
    event.listen(sync_engine, "after_cursor_execute", listeners.after_cursor_execute)
    event.listen(sync_engine, "handle_error", listeners.handle_error)
    _instrumented[sync_engine] = listeners
    return listeners.query_logger


def uninstrument_engine(engine: Engine | AsyncEngine) -> None:
    """Remove listeners added by instrument_engine(). No-op if not instrumented."""
    sync_engine = _sync_engine(engine)
    listeners = _instrumented.pop(sync_engine, None)
    if listeners is None:
        return
    event.remove(sync_engine, "before_cursor_execute", listeners.before_cursor_execute)
    event.remove(sync_engine, "after_cursor_execute", listeners.after_cursor_execute)
    event.remove(sync_engine, "handle_error", listeners.handle_error)
