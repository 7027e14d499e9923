"""Severity routing for completed operations.

Decides whether a finished HTTP exchange or SQL statement is reported at
error, warning or info level, or not at all. Evaluated in priority order,
first match wins:

1. an error that is not ignorable -> error (an ignorable error suppresses
   the event entirely, it is never downgraded)
2. a degraded outcome or ``elapsed > threshold`` -> warning
3. otherwise -> info

Each level is only returned when the configured verbosity permits it.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Severity of an emitted event. Values match structlog method names."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Verbosity(str, Enum):
    """Minimum verbosity of an interceptor, from quietest to loudest."""

    SILENT = "silent"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _VERBOSITY_RANK[self]

    def permits(self, severity: Severity) -> bool:
        """Return True if events at ``severity`` are emitted at this verbosity."""
        return self.rank >= _SEVERITY_RANK[severity]


_VERBOSITY_RANK = {
    Verbosity.SILENT: 0,
    Verbosity.ERROR: 1,
    Verbosity.WARN: 2,
    Verbosity.INFO: 3,
}

_SEVERITY_RANK = {
    Severity.ERROR: 1,
    Severity.WARNING: 2,
    Severity.INFO: 3,
}


def route(
    elapsed: float,
    threshold: float | None,
    error: Any = None,
    *,
    is_ignorable: Callable[[Any], bool] | None = None,
    verbosity: Verbosity = Verbosity.INFO,
    degraded: bool = False,
) -> Severity | None:
    """Pick the severity for a completed operation.

    Args:
        elapsed: Duration of the operation (same unit as ``threshold``)
        threshold: Slow threshold; ``None`` disables the slow check
        error: Failure of the observed call, if any
        is_ignorable: Predicate marking expected errors (e.g. not found)
        verbosity: Configured minimum verbosity
        degraded: Outcome that is not a failure but warrants a warning
            (HTTP 4xx)

    Returns:
        The severity to emit at, or None when nothing should be emitted
    """
    if error is not None:
        if is_ignorable is not None and is_ignorable(error):
            return None
        if verbosity.permits(Severity.ERROR):
            return Severity.ERROR

    slow = threshold is not None and elapsed > threshold
    if (degraded or slow) and verbosity.permits(Severity.WARNING):
        return Severity.WARNING

    if verbosity.permits(Severity.INFO):
        return Severity.INFO

    return None
