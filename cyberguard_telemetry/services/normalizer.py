"""Map decoded payloads of any known schema onto StandardizedMetrics."""

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..utils.metrics import MetricsDetail, StandardizedMetrics


class SchemaVersion(Enum):
    """Payload schemas the normalizer understands."""

    LIVE_V1 = "live_v1"
    LIVE_SUMMARY = "live_summary"
    SIMULATED = "simulated"

    @classmethod
    def detect(cls, payload: Any) -> "SchemaVersion":
        """Guess the schema of an (already unwrapped) payload from its keys."""
        if isinstance(payload, Mapping):
            if payload.get("is_simulated") or "bandwidth_used" in payload:
                return cls.SIMULATED
            if "current_cpu_percent" in payload:
                return cls.LIVE_SUMMARY
        return cls.LIVE_V1


# Documented defaults for values the payload cannot supply.
DEFAULT_PERCENT = 0.0
DEFAULT_LATENCY_MS = 0.0
DEFAULT_COUNT = 0
DEFAULT_BANDWIDTH_MBPS = 0.0

_BITS_PER_MEGABIT = 1_000_000


def _number(value: Any, default: float = 0.0) -> float:
    """Coerce to a finite float, falling back to ``default``."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _count(value: Any, default: int = DEFAULT_COUNT) -> int:
    number = _number(value, float(default))
    return max(int(round(number)), 0)


def _percent(value: Any, default: float = DEFAULT_PERCENT) -> float:
    return min(max(_number(value, default), 0.0), 100.0)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _first(payload: Mapping, keys: Iterable[str]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    elif isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass
    return datetime.now(timezone.utc)


class MetricsNormalizer:
    """
    Translate decoded payloads into the canonical StandardizedMetrics record.

    ``normalize`` never raises. Missing or unusable fields are replaced with
    the module-level defaults so consumers can always render a record.

    Bandwidth is throughput in Mbps. Live records that only carry cumulative
    byte counters get it from the counter delta against the previous such
    record, so the first one reports DEFAULT_BANDWIDTH_MBPS.
    """

    def __init__(self, logger: logging.Logger = None):
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self._last_counters: Optional[Tuple[datetime, float]] = None

    def normalize(self, parsed_value: Any, schema: Optional[SchemaVersion] = None) -> StandardizedMetrics:
        """
        Normalize a decoded payload.

        Args:
            parsed_value: Decoded payload (mapping, envelope or anything else)
            schema: Source schema; detected from the payload when omitted

        Returns:
            StandardizedMetrics: Complete, default-filled record
        """
        payload = self._unwrap(parsed_value)
        if not isinstance(payload, Mapping):
            self.logger.warning(f"Payload is {type(payload).__name__}, not an object; using defaults")
            payload = {}

        schema = schema or SchemaVersion.detect(payload)
        if schema is SchemaVersion.LIVE_SUMMARY:
            return self._from_summary(payload)
        return self._from_record(payload)

    @staticmethod
    def _unwrap(value: Any) -> Any:
        """Strip ``{"data": ...}`` and ``{"metrics": [...]}`` envelopes."""
        while isinstance(value, Mapping):
            if isinstance(value.get("data"), (Mapping, list)):
                value = value["data"]
            elif isinstance(value.get("metrics"), (Mapping, list)):
                value = value["metrics"]
            else:
                break
            if isinstance(value, list):
                # Backend history lists are oldest first; take the latest entry.
                value = value[-1] if value else {}
        return value

    def _from_record(self, payload: Mapping) -> StandardizedMetrics:
        detail = self._detail(payload)
        timestamp = _timestamp(payload.get("timestamp"))

        disk_usage = _first(payload, ("disk_percent", "disk_usage"))
        if disk_usage is None and detail.disk_total > 0:
            disk_usage = detail.disk_used / detail.disk_total * 100

        bandwidth = _first(payload, ("bandwidth_used", "bandwidth_usage"))
        if bandwidth is None:
            bandwidth = self._throughput_mbps(timestamp, detail)

        threats = _first(payload, ("threat_count", "threats_detected", "realTimeThreats"))
        if threats is None:
            threats = sum((detail.cpu_alert, detail.memory_alert, detail.disk_alert))

        return StandardizedMetrics(
            cpu_usage=_percent(_first(payload, ("cpu_percent", "cpu_usage"))),
            memory_usage=_percent(_first(payload, ("memory_percent", "memory_usage"))),
            disk_usage=_percent(disk_usage),
            network_latency=max(_number(_first(payload, ("network_latency", "latency_ms")), DEFAULT_LATENCY_MS), 0.0),
            active_connections=_count(_first(payload, ("active_connections", "connection_count"))),
            bandwidth_usage=max(_number(bandwidth, DEFAULT_BANDWIDTH_MBPS), 0.0),
            online_nodes=_count(payload.get("online_nodes")),
            threat_count=_count(threats),
            timestamp=timestamp,
            detail=detail,
        )

    def _from_summary(self, payload: Mapping) -> StandardizedMetrics:
        alert_count = _count(payload.get("alert_count"))
        return StandardizedMetrics(
            cpu_usage=_percent(payload.get("current_cpu_percent")),
            memory_usage=_percent(payload.get("current_memory_percent")),
            disk_usage=_percent(payload.get("current_disk_percent")),
            network_latency=DEFAULT_LATENCY_MS,
            active_connections=DEFAULT_COUNT,
            bandwidth_usage=DEFAULT_BANDWIDTH_MBPS,
            online_nodes=DEFAULT_COUNT,
            threat_count=alert_count,
            timestamp=_timestamp(payload.get("timestamp")),
            detail=MetricsDetail(alert_count=alert_count),
        )

    def _throughput_mbps(self, timestamp: datetime, detail: MetricsDetail) -> float:
        """Mbps between these byte counters and the previous live record's."""
        total = _number(detail.net_bytes_sent + detail.net_bytes_recv)
        previous, self._last_counters = self._last_counters, (timestamp, total)
        if previous is None:
            return DEFAULT_BANDWIDTH_MBPS

        elapsed = (timestamp - previous[0]).total_seconds()
        delta = total - previous[1]
        if elapsed <= 0 or delta < 0:
            # Counter reset or a record that is not newer than the last one
            return DEFAULT_BANDWIDTH_MBPS
        return _number(delta * 8 / _BITS_PER_MEGABIT / elapsed, DEFAULT_BANDWIDTH_MBPS)

    @staticmethod
    def _detail(payload: Mapping) -> MetricsDetail:
        alerts: Dict[str, Any] = payload.get("alerts") if isinstance(payload.get("alerts"), Mapping) else payload
        cpu_alert = _flag(alerts.get("cpu_alert"))
        memory_alert = _flag(alerts.get("memory_alert"))
        disk_alert = _flag(alerts.get("disk_alert"))

        return MetricsDetail(
            cpu_count=_count(payload.get("cpu_count")),
            memory_total=_number(payload.get("memory_total")),
            memory_available=_number(payload.get("memory_available")),
            disk_total=_number(payload.get("disk_total")),
            disk_used=_number(payload.get("disk_used")),
            disk_free=_number(payload.get("disk_free")),
            net_bytes_sent=_number(_first(payload, ("net_bytes_sent", "network_out"))),
            net_bytes_recv=_number(_first(payload, ("net_bytes_recv", "network_in"))),
            load_1min=_number(payload.get("load_1min")),
            load_5min=_number(payload.get("load_5min")),
            load_15min=_number(payload.get("load_15min")),
            process_count=_count(payload.get("process_count")),
            thread_count=_count(payload.get("thread_count")),
            cpu_alert=cpu_alert,
            memory_alert=memory_alert,
            disk_alert=disk_alert,
            alert_count=sum((cpu_alert, memory_alert, disk_alert)),
        )
