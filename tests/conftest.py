"""Shared pytest configuration and fixtures."""

import json
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

from cyberguard_telemetry.config.loader import ConfigLoader
from cyberguard_telemetry.config.models import (
    BackendConfig,
    PollingConfig,
    TelemetrySystemConfig,
    TimeoutsConfig,
)
from cyberguard_telemetry.decoding.decoder import ResponseDecoder
from cyberguard_telemetry.services.api_client import TelemetryApiClient
from cyberguard_telemetry.services.credential_store import CredentialStore
from cyberguard_telemetry.services.normalizer import MetricsNormalizer
from cyberguard_telemetry.services.request_engine import RequestEngine
from cyberguard_telemetry.utils.logger import setup_logger


# Path to the example config shipped with the repo
CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.example.yaml"

# Sample record in the backend's /metrics/current/ schema
LIVE_METRICS = {
    "id": 42,
    "timestamp": "2024-05-01T12:00:00Z",
    "cpu_percent": 37.5,
    "cpu_count": 8,
    "memory_total": 16384,
    "memory_available": 8192,
    "memory_percent": 50.0,
    "disk_total": 500,
    "disk_used": 200,
    "disk_free": 300,
    "disk_percent": 40.0,
    "net_bytes_sent": 1048576,
    "net_bytes_recv": 2097152,
    "load_1min": 0.5,
    "cpu_alert": False,
    "memory_alert": True,
    "disk_alert": False,
}


@pytest.fixture(scope="session")
def config():
    """Load the example configuration from config/config.example.yaml."""
    if not CONFIG_PATH.exists():
        pytest.skip(f"Config file not found: {CONFIG_PATH}")

    return ConfigLoader.load_from_file(str(CONFIG_PATH))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def backend_config():
    return BackendConfig(base_url="http://backend.test")


@pytest.fixture
def fast_timeouts():
    """Timeout tiers short enough for tests to hit them."""
    return TimeoutsConfig(health_seconds=0.05, bulk_metrics_seconds=0.05, default_seconds=0.05)


@pytest.fixture
def system_config(backend_config, fast_timeouts):
    """Complete config with fast timeouts and no persisted token."""
    return TelemetrySystemConfig(
        backend=backend_config,
        timeouts=fast_timeouts,
        polling=PollingConfig(mode="live", interval_seconds=5, failure_threshold=3),
    )


@pytest.fixture
def credentials(logger):
    return CredentialStore(logger=logger)


@pytest.fixture
def engine(backend_config, fast_timeouts, credentials, logger):
    return RequestEngine(backend_config, fast_timeouts, credentials, logger)


@pytest.fixture
def decoder(logger):
    return ResponseDecoder(logger=logger)


@pytest.fixture
def normalizer(logger):
    return MetricsNormalizer(logger)


@pytest.fixture
def api(backend_config, engine, decoder, credentials, logger):
    return TelemetryApiClient(backend_config, engine, decoder, credentials, logger)


@pytest.fixture
def make_response():
    """Factory for mocked httpx responses."""
    def factory(status_code=200, body=None, text=None, content_type="application/json", headers=None):
        response = Mock()
        response.status_code = status_code
        response.text = text if text is not None else json.dumps(body if body is not None else {})
        response.headers = {"content-type": content_type, **(headers or {})}
        return response
    return factory


@pytest.fixture
def mock_client():
    """Patch httpx.AsyncClient and yield the client used inside ``async with``."""
    with patch('httpx.AsyncClient') as mock_client_class:
        client = AsyncMock()
        mock_client_class.return_value.__aenter__.return_value = client
        yield client


@pytest.fixture
def live_metrics():
    """Fresh copy of the sample backend record."""
    return dict(LIVE_METRICS)
