"""
Unit tests for application configuration.
"""

import pytest

from pressframe.config import AppConfig


class TestFromEnv:
    """Tests for AppConfig.from_env()."""

    def test_defaults(self, monkeypatch):
        """Test values when nothing is set."""
        for name in ("APP_ENV", "APP_DEBUG", "APP_PORT", "LOG_FILE", "ADMIN_SLUG", "APP_MIDDLEWARE"):
            monkeypatch.delenv(name, raising=False)

        config = AppConfig.from_env()

        assert config.env == "production"
        assert config.debug is False
        assert config.port == 8000
        assert config.log_file == "storage/logs/app.log"
        assert config.admin_slug == "admin"
        assert config.middleware == []

    def test_reads_environment(self, monkeypatch):
        """Test overrides from the environment."""
        monkeypatch.setenv("APP_ENV", "development")
        monkeypatch.setenv("APP_DEBUG", "yes")
        monkeypatch.setenv("APP_PORT", "9001")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FILE", "")
        monkeypatch.setenv("ADMIN_SLUG", "hidden-door")
        monkeypatch.setenv("ADMIN_USERNAME", "root")
        monkeypatch.setenv("APP_MIDDLEWARE", "csrf  throttle:100,60")
        monkeypatch.setenv("UPLOAD_DIR", "/srv/media")
        monkeypatch.setenv("UPLOAD_MAX_BYTES", "2048")

        config = AppConfig.from_env()

        assert config.env == "development"
        assert config.is_development
        assert config.debug is True
        assert config.port == 9001
        assert config.log_level == "DEBUG"
        assert config.log_file is None
        assert config.admin_slug == "hidden-door"
        assert config.admin_username == "root"
        assert config.middleware == ["csrf", "throttle:100,60"]
        assert config.upload_dir == "/srv/media"
        assert config.upload_max_bytes == 2048


class TestValidate:
    """Tests for AppConfig.validate()."""

    def test_defaults_are_valid(self):
        """Test that the default config passes."""
        AppConfig().validate()

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"database_url": ""},
        {"database_pool_size": 0},
        {"session_lifetime": 0},
        {"admin_slug": ""},
        {"admin_slug": "a/b"},
        {"upload_dir": ""},
        {"upload_max_bytes": 0},
    ])
    def test_invalid_settings(self, overrides):
        """Test each rejected setting."""
        with pytest.raises(ValueError):
            AppConfig(**overrides).validate()
