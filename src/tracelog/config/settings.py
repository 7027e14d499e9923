"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)

HTTP interception settings use the ``HTTP_LOG_`` prefix and SQL
interception settings the ``SQL_LOG_`` prefix, e.g. ``HTTP_LOG_MAX_BODY_SIZE``
or ``SQL_LOG_SLOW_THRESHOLD_MS``.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracelog.routing import Verbosity


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class HTTPLoggingSettings(BaseSettings):
    """Request/response interception configuration."""

    model_config = SettingsConfigDict(env_prefix="HTTP_LOG_")

    request_id_header: str = Field(
        default="X-Request-ID",
        description="Header used to accept and echo the request ID",
    )
    max_body_size: int = Field(
        default=4096,
        description="Maximum number of body bytes kept in a log snapshot",
    )
    log_request_body: bool = Field(
        default=True, description="Include request body on 4xx/5xx responses"
    )
    log_response_body: bool = Field(
        default=True, description="Include response body on 4xx/5xx responses"
    )
    skip_paths: list[str] = Field(
        default_factory=list, description="Paths that are never logged"
    )
    use_uuid7: bool = Field(
        default=True, description="Generate time-ordered (v7) request IDs"
    )
    mask_patterns: list[str] = Field(
        default_factory=list,
        description="Case-insensitive regexes of body field names to mask",
    )
    ignore_status_codes: list[int] = Field(
        default_factory=list,
        description="Status codes whose completion event is suppressed",
    )
    level: Verbosity = Field(default=Verbosity.INFO, description="Minimum verbosity")
    trust_forwarded_headers: bool = Field(
        default=False,
        description="Use X-Forwarded-For / X-Real-IP as the client address",
    )

    @field_validator("max_body_size")
    @classmethod
    def validate_max_body_size(cls, v: int) -> int:
        """Ensure at least one byte can be captured."""
        if v < 1:
            raise ValueError("max_body_size must be at least 1")
        return v


class SQLLoggingSettings(BaseSettings):
    """Database statement interception configuration."""

    model_config = SettingsConfigDict(env_prefix="SQL_LOG_")

    slow_threshold_ms: float = Field(
        default=200.0, description="Statements slower than this are logged as slow"
    )
    ignore_record_not_found: bool = Field(
        default=True, description="Do not log NoResultFound errors"
    )
    level: Verbosity = Field(default=Verbosity.WARN, description="Minimum verbosity")


class Settings(BaseSettings):
    """Main settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., HTTP_LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="app", description="Service name in log events")
    app_version: str = Field(default="1.0.0", description="Version in log events")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")
    log_console: bool = Field(default=True, description="Write logs to stdout")
    log_file_path: str | None = Field(default=None, description="Log file path")
    log_file_max_mb: int = Field(default=100, description="Rotate after this size")
    log_file_backups: int = Field(default=3, description="Rotated files to keep")
    log_file_max_age_days: int = Field(
        default=30, description="Delete rotated files older than this (0 keeps all)"
    )
    log_file_compress: bool = Field(default=True, description="Gzip rotated files")
    log_caller: bool = Field(default=True, description="Add filename, func_name, lineno")
    log_error_stack: bool = Field(default=True, description="Add stack to error events")
    log_timezone: str = Field(default="UTC", description="Timezone for timestamps")

    # Nested settings
    http: HTTPLoggingSettings = Field(default_factory=HTTPLoggingSettings)
    sql: SQLLoggingSettings = Field(default_factory=SQLLoggingSettings)

    @field_validator("log_file_max_mb")
    @classmethod
    def validate_log_file_max_mb(cls, v: int) -> int:
        """Fall back to the default size for non-positive values."""
        return v if v > 0 else 100

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()
