"""Masking of sensitive fields in captured request/response bodies.

Bodies are parsed as JSON and walked recursively. Any object key matching
one of the configured patterns has its whole value replaced by
``MASK_VALUE``; everything else keeps its shape. Bodies that are not valid
JSON are returned unchanged, logging must never break the request path.
"""

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Union

MASK_VALUE = "******"
TRUNCATION_MARKER = "...[truncated]"

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]


@dataclass(frozen=True)
class RedactionRule:
    """Field-name pattern and the value that replaces matched fields."""

    pattern: re.Pattern[str]
    replacement: str = MASK_VALUE

    def matches(self, field_name: str) -> bool:
        return self.pattern.search(field_name) is not None


def compile_rules(patterns: Iterable[str]) -> tuple[RedactionRule, ...]:
    """Compile field-name patterns into case-insensitive redaction rules.

    Patterns that fail to compile are dropped, the remaining ones still apply.

    Example:
        compile_rules(["password", "secret", "^token$"])
    """
    rules = []
    for pattern in patterns:
        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error:
            continue
        rules.append(RedactionRule(compiled))
    return tuple(rules)


def _match(field_name: str, rules: Sequence[RedactionRule]) -> RedactionRule | None:
    for rule in rules:
        if rule.matches(field_name):
            return rule
    return None


def redact(document: JSONValue, rules: Sequence[RedactionRule]) -> JSONValue:
    """Return ``document`` with the values of matching fields masked.

    Masked values are replaced wholesale, whatever their type, and are not
    descended into. Lists are walked element by element but never masked by
    index. With no rules the document itself is returned.
    """
    if not rules:
        return document

    if isinstance(document, dict):
        result = {}
        for key, value in document.items():
            rule = _match(str(key), rules)
            if rule is not None:
                result[key] = rule.replacement
            else:
                result[key] = redact(value, rules)
        return result
    if isinstance(document, list):
        return [redact(item, rules) for item in document]
    return document


def redact_body(body: str, rules: Sequence[RedactionRule]) -> str:
    """Parse a JSON body, mask matching fields and serialize it back.

    If the body is empty or not valid JSON it is returned unchanged.
    """
    if not rules or not body:
        return body

    try:
        data = json.loads(body)
    except ValueError:
        return body

    try:
        return json.dumps(redact(data, rules), ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return body


def _cut(data: bytes, limit: int) -> bytes:
    """Cut ``data`` to at most ``limit`` bytes without splitting a UTF-8 character."""
    cut = limit
    # Back off over the continuation bytes of a character straddling the limit
    while cut > 0 and limit - cut < 3 and data[cut] & 0xC0 == 0x80:
        cut -= 1
    return data[:cut]


def truncate(data: bytes, limit: int) -> tuple[str, bool]:
    """Decode at most ``limit`` bytes, appending a marker if data was cut.

    Returns:
        Tuple of (text, truncated)
    """
    if len(data) > limit:
        return _cut(data, limit).decode("utf-8", errors="replace") + TRUNCATION_MARKER, True
    return data.decode("utf-8", errors="replace"), False


def truncate_text(text: str, limit: int) -> str:
    """Truncate already decoded text to ``limit`` UTF-8 bytes."""
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return truncate(encoded, limit)[0]
