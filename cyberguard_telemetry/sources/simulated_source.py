"""Synthetic metrics generator used in simulated mode and as live fallback."""

import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..services.normalizer import MetricsNormalizer, SchemaVersion
from ..utils.errors import SimulationError
from ..utils.metrics import DataSource, StandardizedMetrics
from .base import MetricsSource


class SimulatedSource(MetricsSource):
    """
    Generate bounded, internally consistent synthetic metrics.

    CPU and memory pressure drive the rest: alerts are raised from the
    generated usage values and the threat count grows with pressure and
    with the number of raised alerts.
    """

    source = DataSource.SIMULATED

    CPU_COUNT = 8
    MEMORY_TOTAL_MB = 16384
    DISK_TOTAL_GB = 500
    BANDWIDTH_TOTAL_MBPS = 1000
    ONLINE_NODES = 47

    CPU_ALERT_PCT = 85
    MEMORY_ALERT_PCT = 85
    DISK_ALERT_PCT = 75

    def __init__(
        self,
        normalizer: MetricsNormalizer,
        logger: logging.Logger,
        seed: Optional[int] = None
    ):
        super().__init__(normalizer, logger)
        self.rng = random.Random(seed)

    async def acquire(self) -> StandardizedMetrics:
        return self.generate()

    def generate(self) -> StandardizedMetrics:
        """
        Produce one synthetic record through the normalizer's simulated schema.

        Raises:
            SimulationError: If the generator fails
        """
        try:
            payload = self.generate_payload()
        except Exception as e:
            self.logger.error(f"Synthetic metrics generation failed: {e}", exc_info=True)
            raise SimulationError(f"Synthetic metrics generation failed: {e}") from e
        return self.normalizer.normalize(payload, SchemaVersion.SIMULATED)

    def generate_payload(self) -> Dict[str, Any]:
        """Return a raw payload in the generator's own schema."""
        rng = self.rng

        cpu = rng.uniform(10, 90)
        memory = min(max(20 + cpu * 0.55 + rng.uniform(-10, 10), 20), 95)
        disk_used = rng.uniform(100, 400)
        disk_percent = disk_used / self.DISK_TOTAL_GB * 100

        cpu_alert = cpu >= self.CPU_ALERT_PCT
        memory_alert = memory >= self.MEMORY_ALERT_PCT
        disk_alert = disk_percent >= self.DISK_ALERT_PCT
        alert_count = sum((cpu_alert, memory_alert, disk_alert))

        pressure = (cpu + memory) / 2
        threat_count = rng.randint(0, 2) + int(max(pressure - 40, 0) / 8) + 2 * alert_count

        bandwidth_upload = rng.uniform(20, 420)
        bandwidth_download = rng.uniform(30, 430)
        bandwidth_used = bandwidth_upload + bandwidth_download

        load = self.CPU_COUNT * cpu / 100

        return {
            "is_simulated": True,
            "cpu_percent": cpu,
            "cpu_count": self.CPU_COUNT,
            "memory_total": self.MEMORY_TOTAL_MB,
            "memory_available": self.MEMORY_TOTAL_MB * (1 - memory / 100),
            "memory_percent": memory,
            "disk_total": self.DISK_TOTAL_GB,
            "disk_used": disk_used,
            "disk_free": self.DISK_TOTAL_GB - disk_used,
            "disk_percent": disk_percent,
            "net_bytes_sent": rng.randint(0, 1_000_000_000),
            "net_bytes_recv": rng.randint(0, 1_000_000_000),
            "bandwidth_total": self.BANDWIDTH_TOTAL_MBPS,
            "bandwidth_used": bandwidth_used,
            "bandwidth_upload": bandwidth_upload,
            "bandwidth_download": bandwidth_download,
            "network_latency": 10 + rng.uniform(0, 40) + pressure * 0.2,
            "active_connections": rng.randint(8000, 9000),
            "online_nodes": self.ONLINE_NODES,
            "load_1min": load * rng.uniform(0.9, 1.1),
            "load_5min": load * rng.uniform(0.8, 1.2),
            "load_15min": load * rng.uniform(0.7, 1.3),
            "process_count": rng.randint(100, 300),
            "thread_count": rng.randint(500, 1500),
            "cpu_alert": cpu_alert,
            "memory_alert": memory_alert,
            "disk_alert": disk_alert,
            "threat_count": threat_count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
