"""Tests for Pydantic Settings configuration validation"""
import pytest
from pydantic import ValidationError

from reading_journey.config import Settings, validate_config
from reading_journey.exceptions import ConfigurationError


class TestConfigValidation:
    """Test configuration validation with Pydantic Settings"""

    def test_defaults(self, monkeypatch):
        for name in ("STORE_BACKEND", "GAMIFICATION_TIMEZONE", "LOG_LEVEL", "API_KEYS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.store_backend == "memory"
        assert settings.gamification_timezone == "UTC"
        assert settings.log_level == "INFO"
        assert settings.api_key_list == []

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "postgres")
        monkeypatch.setenv("DATABASE_URL", "postgres://reader:secret@db:5432/journey")
        monkeypatch.setenv("GAMIFICATION_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("API_KEYS", "key-one, key-two,")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example,https://b.example")

        settings = Settings(_env_file=None)

        assert settings.store_backend == "postgres"
        assert settings.database_url == "postgres://reader:secret@db:5432/journey"
        assert settings.gamification_timezone == "Europe/Berlin"
        assert settings.log_level == "DEBUG"
        assert settings.api_key_list == ["key-one", "key-two"]
        assert settings.cors_origin_list == ["https://a.example", "https://b.example"]

    def test_invalid_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mysql://localhost/db")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "database_url" in str(exc_info.value)

    def test_invalid_timezone(self, monkeypatch):
        monkeypatch.setenv("GAMIFICATION_TIMEZONE", "Mars/Olympus_Mons")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "gamification_timezone" in str(exc_info.value)

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_invalid_store_backend(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "sqlite")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestValidateConfig:

    def test_pool_sizes_must_be_ordered(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_MIN_SIZE", "20")
        monkeypatch.setenv("DB_POOL_MAX_SIZE", "5")

        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(Settings(_env_file=None))

        assert exc_info.value.config_key == "DB_POOL_MIN_SIZE"

    def test_missing_api_keys_only_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("API_KEYS", "")

        with caplog.at_level("WARNING"):
            validate_config(Settings(_env_file=None))

        assert "No API_KEYS configured" in caplog.text
