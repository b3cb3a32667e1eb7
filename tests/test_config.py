"""Settings loading and validation."""

from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from app.core.config import EnvironmentMode, Settings


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ENV_MODE", "PRODUCTION")
    monkeypatch.setenv("BUSINESS_TIMEZONE", "Asia/Kolkata")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://pos.example.com")

    settings = Settings()

    assert settings.env_mode is EnvironmentMode.PRODUCTION
    assert settings.is_production
    assert settings.timezone == ZoneInfo("Asia/Kolkata")
    assert settings.cors_origins_list == ["http://localhost:3000", "https://pos.example.com"]


def test_test_run_settings():
    settings = Settings()

    assert settings.is_testing
    assert settings.ledger_export_enabled is False
    assert settings.database_url.startswith("sqlite+aiosqlite")


@pytest.mark.parametrize("name, value", [("ENV_MODE", "staging"), ("BUSINESS_TIMEZONE", "Mars/Olympus")])
def test_invalid_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings()
