# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from settings.config_models import AppSettings, DuckDnsSettings, StardewSettings


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep host environment variables from leaking into the settings models."""
    for name in DuckDnsSettings.model_fields:
        monkeypatch.delenv(f"DUCKDNS_{name.upper()}", raising=False)
    for name in StardewSettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
        monkeypatch.delenv(f"STARDEW_{name.upper()}", raising=False)
    for name in AppSettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.delenv("SUDO_USER", raising=False)


@pytest.fixture
def app_settings():
    """Fixture to provide a basic AppSettings object."""
    return AppSettings()


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)
