"""Configuration and settings management using pydantic-settings."""
import json
from typing import Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with environment variable loading (STEPFLOW_*)."""

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log output format: json or text")

    # Scheduling
    max_workers: int = Field(
        default=4,
        description="Maximum number of steps running concurrently",
    )

    # Retry defaults, used when a step declares no retry policy
    default_max_retries: int = Field(
        default=2,
        description="Retries for transient adapter failures",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        description="Delay before the first retry",
    )
    retry_backoff_multiplier: float = Field(
        default=2.0,
        description="Backoff growth factor between retries",
    )
    retry_max_backoff_seconds: float = Field(
        default=30.0,
        description="Upper bound on a single backoff delay",
    )

    # Deadlines
    default_step_timeout_s: float | None = Field(
        default=None,
        description="Per-step timeout when the step declares none (None = run deadline only)",
    )
    run_deadline_s: float | None = Field(
        default=None,
        description="Overall run deadline in seconds (None = unbounded)",
    )

    # HTTP adapter
    adapter_endpoint: str | None = Field(
        default=None,
        description="GraphQL endpoint or REST base URL",
    )
    adapter_token: SecretStr | None = Field(
        default=None,
        description="Bearer token sent to the backend",
    )
    adapter_request_timeout_s: float = Field(
        default=30.0,
        description="Per-request HTTP timeout in seconds",
    )
    adapter_headers_json: str | None = Field(
        default=None,
        description="JSON object of extra HTTP headers",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate that the worker pool is not empty."""
        if v <= 0:
            raise ValueError("max_workers must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator("default_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("default_max_retries must not be negative")
        return v

    @field_validator("default_step_timeout_s", "run_deadline_s")
    @classmethod
    def validate_positive_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    def get_adapter_headers(self) -> dict[str, str]:
        """
        Extra HTTP headers from ``adapter_headers_json``.

        Raises:
            ValueError: If the JSON is malformed or not an object
        """
        if not self.adapter_headers_json:
            return {}
        try:
            headers: Any = json.loads(self.adapter_headers_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"STEPFLOW_ADAPTER_HEADERS_JSON is not valid JSON: {e}") from e
        if not isinstance(headers, dict):
            raise ValueError("STEPFLOW_ADAPTER_HEADERS_JSON must be a JSON object")
        return {str(k): str(v) for k, v in headers.items()}


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
