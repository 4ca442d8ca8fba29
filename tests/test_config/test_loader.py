"""Tests for configuration loading."""

import pytest
from pathlib import Path
from pydantic import ValidationError

from cyberguard_telemetry.config.loader import ConfigLoader
from cyberguard_telemetry.config.models import AuthConfig, BackendConfig, PollingConfig, TimeoutsConfig
from cyberguard_telemetry.config.settings import Settings

EXAMPLE_CONFIG = Path(__file__).parent.parent.parent / "config" / "config.example.yaml"

ENV_VARS = (
    "CYBERGUARD_BASE_URL", "CYBERGUARD_MODE", "CYBERGUARD_TOKEN_FILE",
    "CYBERGUARD_USERNAME", "CYBERGUARD_PASSWORD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestLoadFromFile:
    def test_example_config(self):
        config = ConfigLoader.load_from_file(str(EXAMPLE_CONFIG))

        assert config.backend.base_url == "http://localhost:8000"
        assert config.timeouts.health_seconds == 8
        assert config.timeouts.bulk_metrics_seconds == 30
        assert config.timeouts.default_seconds == 15
        assert config.polling.mode == "live"
        assert config.polling.interval_seconds == 5
        assert config.health_probe.interval_seconds == 30
        assert config.auth.username == ""
        assert config.simulation.seed is None

    def test_env_substitution(self, monkeypatch):
        monkeypatch.setenv("CYBERGUARD_USERNAME", "admin")
        monkeypatch.setenv("CYBERGUARD_PASSWORD", "secret")

        config = ConfigLoader.load_from_file(str(EXAMPLE_CONFIG))

        assert config.auth.username == "admin"
        assert config.auth.password == "secret"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CYBERGUARD_BASE_URL", "https://telemetry.example.com/")
        monkeypatch.setenv("CYBERGUARD_MODE", "simulated")
        monkeypatch.setenv("CYBERGUARD_TOKEN_FILE", "/tmp/token.json")

        config = ConfigLoader.load_from_file(str(EXAMPLE_CONFIG))

        assert config.backend.base_url == "https://telemetry.example.com"
        assert config.polling.mode == "simulated"
        assert config.auth.token_file == "/tmp/token.json"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_from_file(str(tmp_path / "missing.yaml"))

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        config = ConfigLoader.load_from_file(str(path))

        assert config.polling.mode == "live"
        assert config.timeouts.bulk_metrics_seconds == 30

    def test_invalid_mode_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("polling:\n  mode: hybrid\n")

        with pytest.raises(ValidationError):
            ConfigLoader.load_from_file(str(path))

    def test_load_defaults(self, monkeypatch):
        monkeypatch.setenv("CYBERGUARD_MODE", "simulated")

        config = ConfigLoader.load_defaults()

        assert config.polling.mode == "simulated"
        assert config.backend.base_url == "http://localhost:8000"


class TestModels:
    def test_backend_url_validated(self):
        with pytest.raises(ValidationError):
            BackendConfig(base_url="localhost:8000")

    def test_api_path(self):
        backend = BackendConfig(api_prefix="/api/v1/")
        assert backend.api_path("/metrics/current/") == "/api/v1/metrics/current/"

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            TimeoutsConfig(health_seconds=0)

    def test_mode_normalized(self):
        assert PollingConfig(mode=" Simulated ").mode == "simulated"

    def test_password_requires_username(self):
        with pytest.raises(ValidationError):
            AuthConfig(password="secret")


class TestSettings:
    def test_get_default(self):
        assert Settings.get("CYBERGUARD_MODE", "live") == "live"

    def test_required_missing(self):
        with pytest.raises(ValueError):
            Settings.get("CYBERGUARD_MODE", required=True)

    def test_login_password(self, monkeypatch):
        monkeypatch.setenv("CYBERGUARD_PASSWORD", "secret")
        assert Settings.login_password() == "secret"
