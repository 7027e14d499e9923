"""Database statement logging."""

from .base import create_engine, create_session_factory
from .query_logging import (
    QueryLogger,
    SQLEvent,
    find_caller,
    instrument_engine,
    is_record_not_found,
    uninstrument_engine,
)

__all__ = [
    # Engine
    "create_engine",
    "create_session_factory",
    # Statement logging
    "QueryLogger",
    "SQLEvent",
    "find_caller",
    "instrument_engine",
    "is_record_not_found",
    "uninstrument_engine",
]
