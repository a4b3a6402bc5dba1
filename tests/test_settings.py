"""
Tests for environment-driven configuration.
"""
from settings import DEFAULT_MANAGER_ID, Settings


def test_defaults(monkeypatch):
    for name in ("PMS_HOST", "PMS_PORT", "PMS_RELOAD", "PMS_BACKEND_URL", "PMS_CORS_ORIGINS", "PMS_SEED_DEMO_DATA"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.port == 8000
    assert settings.backend_url is None
    assert settings.reload is False
    assert settings.cors_origins == ("*",)
    assert settings.seed_demo_data is True
    assert settings.manager_id == DEFAULT_MANAGER_ID


def test_overrides(monkeypatch):
    monkeypatch.setenv("PMS_PORT", "9000")
    monkeypatch.setenv("PMS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("PMS_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("PMS_BACKEND_URL", "http://backend.test/api/")
    monkeypatch.setenv("PMS_SEED_DEMO_DATA", "no")
    settings = Settings.from_env()
    assert settings.port == 9000
    assert settings.log_level == "debug"
    assert settings.cors_origins == ("http://a.test", "http://b.test")
    assert settings.backend_url == "http://backend.test/api"
    assert settings.seed_demo_data is False


def test_invalid_number_falls_back(monkeypatch):
    monkeypatch.setenv("PMS_PORT", "eighty")
    monkeypatch.setenv("PMS_BACKEND_TIMEOUT", "soon")
    settings = Settings.from_env()
    assert settings.port == 8000
    assert settings.backend_timeout == 10.0
