"""Unit tests for configuration."""

import pytest
from pydantic import ValidationError

from tracelog.config import (
    HTTPLoggingSettings,
    LogFormat,
    LogLevel,
    Settings,
    SQLLoggingSettings,
    get_settings,
)
from tracelog.routing import Verbosity


class TestHTTPLoggingSettings:
    """Tests for HTTP interception settings."""

    def test_defaults(self) -> None:
        settings = HTTPLoggingSettings()
        assert settings.request_id_header == "X-Request-ID"
        assert settings.max_body_size == 4096
        assert settings.log_request_body is True
        assert settings.log_response_body is True
        assert settings.skip_paths == []
        assert settings.use_uuid7 is True
        assert settings.level == Verbosity.INFO
        assert settings.trust_forwarded_headers is False

    def test_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("HTTP_LOG_MAX_BODY_SIZE", "128")
        monkeypatch.setenv("HTTP_LOG_SKIP_PATHS", '["/health", "/ready"]')
        monkeypatch.setenv("HTTP_LOG_MASK_PATTERNS", '["password"]')
        monkeypatch.setenv("HTTP_LOG_LEVEL", "warn")
        settings = HTTPLoggingSettings()
        assert settings.max_body_size == 128
        assert settings.skip_paths == ["/health", "/ready"]
        assert settings.mask_patterns == ["password"]
        assert settings.level == Verbosity.WARN

    def test_max_body_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            HTTPLoggingSettings(max_body_size=0)

    def test_invalid_level(self) -> None:
        with pytest.raises(ValidationError):
            HTTPLoggingSettings(level="verbose")


class TestSQLLoggingSettings:
    """Tests for SQL interception settings."""

    def test_defaults(self) -> None:
        settings = SQLLoggingSettings()
        assert settings.slow_threshold_ms == 200
        assert settings.ignore_record_not_found is True
        assert settings.level == Verbosity.WARN

    def test_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("SQL_LOG_SLOW_THRESHOLD_MS", "50")
        monkeypatch.setenv("SQL_LOG_LEVEL", "info")
        settings = SQLLoggingSettings()
        assert settings.slow_threshold_ms == 50
        assert settings.level == Verbosity.INFO


class TestSettings:
    """Tests for the main settings."""

    def test_environment_from_conftest(self) -> None:
        settings = Settings()
        assert settings.is_development
        assert settings.log_level == LogLevel.DEBUG
        assert settings.log_format == LogFormat.TEXT

    def test_nested_defaults(self) -> None:
        settings = Settings()
        assert isinstance(settings.http, HTTPLoggingSettings)
        assert isinstance(settings.sql, SQLLoggingSettings)

    def test_non_positive_file_size_falls_back(self) -> None:
        assert Settings(log_file_max_mb=0).log_file_max_mb == 100

    def test_get_settings_cached(self) -> None:
        get_settings.cache_clear()
        assert get_settings() is get_settings()

    def test_file_and_caller_defaults(self) -> None:
        settings = Settings()
        assert settings.log_file_max_age_days == 30
        assert settings.log_file_compress is True
        assert settings.log_caller is True
        assert settings.log_error_stack is True
