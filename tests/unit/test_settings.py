"""Tests for configuration settings."""
import pytest
from pydantic import ValidationError

from stepflow.config.settings import Settings, get_settings, reset_settings


class TestSettings:
    """Test Settings configuration."""

    def test_settings_default_values(self, monkeypatch):
        """Test default values are set correctly."""
        monkeypatch.delenv("STEPFLOW_RETRY_BACKOFF_SECONDS", raising=False)
        monkeypatch.delenv("STEPFLOW_LOG_LEVEL", raising=False)

        settings = Settings()

        # env might be 'test' in the test environment
        assert settings.env in ("development", "test")
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"

        # Scheduling and retry defaults
        assert settings.max_workers == 4
        assert settings.default_max_retries == 2
        assert settings.retry_backoff_seconds == 0.5
        assert settings.retry_backoff_multiplier == 2.0
        assert settings.retry_max_backoff_seconds == 30.0

        # Deadlines are unbounded by default
        assert settings.default_step_timeout_s is None
        assert settings.run_deadline_s is None

        # HTTP adapter
        assert settings.adapter_endpoint is None
        assert settings.adapter_token is None
        assert settings.adapter_request_timeout_s == 30.0

    def test_settings_env_prefix(self, monkeypatch):
        """Test that STEPFLOW_ prefix works for environment variables."""
        monkeypatch.setenv("STEPFLOW_ENV", "production")
        monkeypatch.setenv("STEPFLOW_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("STEPFLOW_RUN_DEADLINE_S", "120")

        settings = Settings()

        assert settings.env == "production"
        assert settings.log_level == "DEBUG"
        assert settings.run_deadline_s == 120

    def test_token_is_secret(self, monkeypatch):
        """Test that the adapter token is not leaked by repr."""
        monkeypatch.setenv("STEPFLOW_ADAPTER_TOKEN", "tok-123")

        settings = Settings()

        assert settings.adapter_token.get_secret_value() == "tok-123"
        assert "tok-123" not in repr(settings)

    def test_max_workers_validation(self, monkeypatch):
        """Test that max_workers must be positive."""
        monkeypatch.setenv("STEPFLOW_MAX_WORKERS", "0")

        with pytest.raises(ValidationError) as exc_info:
            Settings()
        assert "max_workers must be positive" in str(exc_info.value)

    def test_log_format_validation(self, monkeypatch):
        """Test that only json and text log formats are accepted."""
        monkeypatch.setenv("STEPFLOW_LOG_FORMAT", "TEXT")
        assert Settings().log_format == "text"

        monkeypatch.setenv("STEPFLOW_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            Settings()

    def test_negative_retries_rejected(self, monkeypatch):
        monkeypatch.setenv("STEPFLOW_DEFAULT_MAX_RETRIES", "-1")
        with pytest.raises(ValidationError):
            Settings()

    @pytest.mark.parametrize("name", ["STEPFLOW_RUN_DEADLINE_S", "STEPFLOW_DEFAULT_STEP_TIMEOUT_S"])
    def test_timeouts_must_be_positive(self, monkeypatch, name):
        monkeypatch.setenv(name, "0")
        with pytest.raises(ValidationError):
            Settings()


class TestAdapterHeaders:
    """Test STEPFLOW_ADAPTER_HEADERS_JSON parsing."""

    def test_no_headers(self):
        assert Settings().get_adapter_headers() == {}

    def test_headers(self, monkeypatch):
        monkeypatch.setenv("STEPFLOW_ADAPTER_HEADERS_JSON", '{"vendure-token": "abc", "x-retries": 2}')
        assert Settings().get_adapter_headers() == {"vendure-token": "abc", "x-retries": "2"}

    @pytest.mark.parametrize("raw", ["{not json", '["a"]'])
    def test_bad_headers(self, monkeypatch, raw):
        monkeypatch.setenv("STEPFLOW_ADAPTER_HEADERS_JSON", raw)
        with pytest.raises(ValueError):
            Settings().get_adapter_headers()


class TestGlobalSettings:
    """Test the cached settings instance."""

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reset_settings(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("STEPFLOW_MAX_WORKERS", "9")
        reset_settings()

        second = get_settings()
        assert second is not first
        assert second.max_workers == 9
