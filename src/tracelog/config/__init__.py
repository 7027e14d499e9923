"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- HTTP and SQL interception settings
- Cached settings access via get_settings()
"""

from .settings import (
    Environment,
    HTTPLoggingSettings,
    LogFormat,
    LogLevel,
    Settings,
    SQLLoggingSettings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    # Component settings
    "HTTPLoggingSettings",
    "SQLLoggingSettings",
]
