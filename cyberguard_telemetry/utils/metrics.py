"""Canonical metrics record and acquisition outcomes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from .errors import ErrorKind


@dataclass(frozen=True)
class MetricsDetail:
    """Optional breakdown carried alongside the headline metrics."""

    cpu_count: int = 0
    memory_total: float = 0.0
    memory_available: float = 0.0
    disk_total: float = 0.0
    disk_used: float = 0.0
    disk_free: float = 0.0
    net_bytes_sent: float = 0.0
    net_bytes_recv: float = 0.0
    load_1min: float = 0.0
    load_5min: float = 0.0
    load_15min: float = 0.0
    process_count: int = 0
    thread_count: int = 0
    cpu_alert: bool = False
    memory_alert: bool = False
    disk_alert: bool = False
    alert_count: int = 0

    @property
    def has_alerts(self) -> bool:
        return self.cpu_alert or self.memory_alert or self.disk_alert or self.alert_count > 0


@dataclass(frozen=True)
class StandardizedMetrics:
    """
    Canonical metrics record seen by every consumer.

    Percentages are 0-100, latency is milliseconds and bandwidth is
    throughput in Mbps. Every numeric field is finite; missing upstream
    values are replaced with defaults by the normalizer before construction.
    """

    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    disk_usage: float = 0.0
    network_latency: float = 0.0
    active_connections: int = 0
    bandwidth_usage: float = 0.0
    online_nodes: int = 0
    threat_count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    detail: Optional[MetricsDetail] = None


class DataSource(Enum):
    """Where a metrics record came from."""

    LIVE = "live"
    SIMULATED = "simulated"


@dataclass(frozen=True)
class Success:
    """Cycle produced metrics from the selected source."""

    metrics: StandardizedMetrics
    source: DataSource


@dataclass(frozen=True)
class Degraded:
    """Live acquisition failed; simulated metrics were substituted."""

    metrics: StandardizedMetrics
    reason_kind: ErrorKind
    reason: str

    @property
    def source(self) -> DataSource:
        return DataSource.SIMULATED


@dataclass(frozen=True)
class Failure:
    """No metrics could be produced at all."""

    error_kind: ErrorKind
    message: str


AcquisitionOutcome = Union[Success, Degraded, Failure]
