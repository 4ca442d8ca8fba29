"""Tests for SimulatedSource."""

import pytest
from unittest.mock import patch

from cyberguard_telemetry.sources.simulated_source import SimulatedSource
from cyberguard_telemetry.utils.errors import ErrorKind, SimulationError


@pytest.fixture
def source(normalizer, logger):
    return SimulatedSource(normalizer, logger, seed=1234)


def without_timestamp(payload):
    return {k: v for k, v in payload.items() if k != "timestamp"}


class TestGeneratePayload:
    def test_values_within_bounds(self, source):
        for _ in range(500):
            payload = source.generate_payload()

            assert 10 <= payload["cpu_percent"] <= 90
            assert 20 <= payload["memory_percent"] <= 95
            assert 20 <= payload["disk_percent"] <= 80
            assert 8000 <= payload["active_connections"] <= 9000
            assert payload["online_nodes"] == 47
            assert payload["bandwidth_used"] == pytest.approx(
                payload["bandwidth_upload"] + payload["bandwidth_download"]
            )
            assert payload["disk_used"] + payload["disk_free"] == pytest.approx(payload["disk_total"])
            assert payload["is_simulated"] is True

    def test_memory_tracks_cpu(self, source):
        for _ in range(500):
            payload = source.generate_payload()
            expected = 20 + payload["cpu_percent"] * 0.55
            # Clamped to 20..95 around cpu-driven value with +/-10 noise
            assert max(expected - 10, 20) <= payload["memory_percent"] <= min(expected + 10, 95)

    def test_alerts_follow_usage(self, source):
        for _ in range(500):
            payload = source.generate_payload()

            assert payload["cpu_alert"] == (payload["cpu_percent"] >= 85)
            assert payload["memory_alert"] == (payload["memory_percent"] >= 85)
            assert payload["disk_alert"] == (payload["disk_percent"] >= 75)

            alert_count = sum((payload["cpu_alert"], payload["memory_alert"], payload["disk_alert"]))
            assert payload["threat_count"] >= 2 * alert_count

    def test_threats_grow_with_pressure(self, source):
        samples = [source.generate_payload() for _ in range(1000)]
        calm = [p["threat_count"] for p in samples if p["cpu_percent"] < 30]
        busy = [p["threat_count"] for p in samples if p["cpu_percent"] > 70]

        assert calm and busy
        assert sum(busy) / len(busy) > sum(calm) / len(calm)

    def test_same_seed_same_sequence(self, normalizer, logger):
        first = SimulatedSource(normalizer, logger, seed=7)
        second = SimulatedSource(normalizer, logger, seed=7)

        for _ in range(10):
            assert without_timestamp(first.generate_payload()) == without_timestamp(second.generate_payload())


class TestGenerate:
    def test_normalized_record(self, source):
        metrics = source.generate()

        assert 10 <= metrics.cpu_usage <= 90
        assert 20 <= metrics.memory_usage <= 95
        assert metrics.online_nodes == 47
        assert metrics.bandwidth_usage > 0
        assert metrics.network_latency >= 10
        assert metrics.detail.cpu_count == SimulatedSource.CPU_COUNT

    @pytest.mark.asyncio
    async def test_acquire(self, source):
        metrics = await source.acquire()
        assert 10 <= metrics.cpu_usage <= 90

    def test_generator_failure_raises_simulation_error(self, source):
        with patch.object(source, "generate_payload", side_effect=ZeroDivisionError("bad")):
            with pytest.raises(SimulationError) as exc_info:
                source.generate()

        assert exc_info.value.kind is ErrorKind.SIMULATION
