"""Pytest configuration and shared fixtures."""

import os
from typing import Any

import pytest
import structlog
from structlog.testing import CapturingLogger

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"


class LogRecorder:
    """Structlog logger that records emitted events instead of writing them."""

    def __init__(self) -> None:
        self.sink = CapturingLogger()
        self.logger = structlog.wrap_logger(
            self.sink,
            processors=[structlog.stdlib.add_log_level],
            wrapper_class=structlog.stdlib.BoundLogger,
        )

    @property
    def events(self) -> list[dict[str, Any]]:
        return [dict(call.kwargs) for call in self.sink.calls]

    def named(self, event: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["event"] == event]

    def clear(self) -> None:
        self.sink.calls.clear()


@pytest.fixture
def log_recorder() -> LogRecorder:
    """Recorder to inject as the `logger` of a middleware or QueryLogger."""
    return LogRecorder()


@pytest.fixture
def sample_login_payload() -> dict[str, Any]:
    """Request body with sensitive fields at several depths."""
    return {
        "username": "alice",
        "password": "hunter2",
        "profile": {
            "email": "alice@example.com",
            "api_token": {"value": "abc", "scopes": ["read"]},
        },
        "devices": [
            {"name": "laptop", "secret": "s1"},
            {"name": "phone", "secret": ["s2", "s3"]},
        ],
    }


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
