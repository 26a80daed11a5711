from urllib.parse import urlparse

import pytest

from chart_service.config import Settings


@pytest.fixture
def default_settings(monkeypatch):
    for name in ("CHART_SERVICE_PORT", "LSTM_BACKEND_URL", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(name, raising=False)
    return Settings(_env_file=None)


def test_default_port_does_not_collide_with_backend(default_settings):
    backend = urlparse(default_settings.lstm_backend_url)

    assert backend.hostname == "localhost"
    assert default_settings.service_port != backend.port


def test_port_and_backend_from_environment(monkeypatch):
    monkeypatch.setenv("CHART_SERVICE_PORT", "9100")
    monkeypatch.setenv("LSTM_BACKEND_URL", "http://lstm.internal:8000")

    settings = Settings(_env_file=None)

    assert settings.service_port == 9100
    assert settings.lstm_backend_url == "http://lstm.internal:8000"


def test_store_configured_needs_url_and_key(default_settings):
    assert default_settings.store_configured is False
    assert Settings(_env_file=None, SUPABASE_URL="https://proj.supabase.test", SUPABASE_SERVICE_ROLE_KEY="key").store_configured
