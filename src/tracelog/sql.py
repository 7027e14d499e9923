"""Best-effort classification of SQL statements.

Only the leading keyword and the first table name are extracted, using
regular expressions. Joins, subqueries and unusual syntax simply yield an
empty table name; the result is advisory and never raises.
"""

import re
from enum import Enum


class SQLOperation(str, Enum):
    """Kind of SQL statement."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    OTHER = "OTHER"


# Prefix checks run in this order
_OPERATION_ORDER = (
    SQLOperation.SELECT,
    SQLOperation.INSERT,
    SQLOperation.UPDATE,
    SQLOperation.DELETE,
)

_IDENT = r"[\"`]?(\w+)[\"`]?"

# FROM "table_name" / INTO `table_name` / UPDATE table_name
_FROM_PATTERN = re.compile(r"\bFROM\s+" + _IDENT, re.IGNORECASE)
_INTO_PATTERN = re.compile(r"\bINTO\s+" + _IDENT, re.IGNORECASE)
_UPDATE_PATTERN = re.compile(r"\bUPDATE\s+" + _IDENT, re.IGNORECASE)

TABLE_PATTERNS = {
    SQLOperation.SELECT: _FROM_PATTERN,
    SQLOperation.INSERT: _INTO_PATTERN,
    SQLOperation.UPDATE: _UPDATE_PATTERN,
    SQLOperation.DELETE: _FROM_PATTERN,
}


def parse_operation(statement: str) -> SQLOperation:
    """Determine the operation from the statement's leading keyword."""
    upper = statement.lstrip().upper()
    for operation in _OPERATION_ORDER:
        if upper.startswith(operation.value):
            return operation
    return SQLOperation.OTHER


def extract_table_name(statement: str, operation: SQLOperation) -> str:
    """Extract the table name for ``operation``, or "" if none is found."""
    pattern = TABLE_PATTERNS.get(operation)
    if pattern is None:
        return ""
    match = pattern.search(statement)
    if match is None:
        return ""
    return match.group(1)


def classify(statement: str) -> tuple[SQLOperation, str]:
    """Return the operation and table name of a SQL statement.

    >>> classify("SELECT * FROM users WHERE id=1")
    (<SQLOperation.SELECT: 'SELECT'>, 'users')
    """
    if not isinstance(statement, str):
        return SQLOperation.OTHER, ""
    operation = parse_operation(statement)
    return operation, extract_table_name(statement, operation)
