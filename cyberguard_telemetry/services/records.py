"""Typed records for the backend's inventory endpoints."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, TypeVar

from .normalizer import _count, _flag, _number, _timestamp

T = TypeVar("T")


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def records_from(payload: Any, factory: Callable[[Mapping], T]) -> List[T]:
    """
    Build typed records from a list payload.

    Accepts a bare list or one wrapped as ``{"metrics": [...]}``,
    ``{"data": [...]}`` or ``{"items": [...]}``. Entries that are not objects
    are skipped; anything else yields an empty list.
    """
    if isinstance(payload, Mapping):
        for key in ("metrics", "data", "items"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break

    if not isinstance(payload, list):
        return []
    return [factory(item) for item in payload if isinstance(item, Mapping)]


@dataclass(frozen=True)
class NetworkInterfaceMetrics:
    """Counters of one network interface, with its configuration when known."""

    interface_name: str
    bytes_sent: float = 0.0
    bytes_recv: float = 0.0
    packets_sent: int = 0
    packets_recv: int = 0
    errin: int = 0
    errout: int = 0
    dropin: int = 0
    dropout: int = 0
    is_up: Optional[bool] = None
    ip_address: Optional[str] = None
    mac_address: Optional[str] = None
    speed: Optional[float] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NetworkInterfaceMetrics":
        config = payload.get("config") if isinstance(payload.get("config"), Mapping) else {}
        speed = config.get("speed")
        return cls(
            interface_name=str(payload.get("interface_name") or payload.get("name") or config.get("interface_name") or ""),
            bytes_sent=_number(payload.get("bytes_sent")),
            bytes_recv=_number(payload.get("bytes_recv")),
            packets_sent=_count(payload.get("packets_sent")),
            packets_recv=_count(payload.get("packets_recv")),
            errin=_count(payload.get("errin")),
            errout=_count(payload.get("errout")),
            dropin=_count(payload.get("dropin")),
            dropout=_count(payload.get("dropout")),
            is_up=_flag(config["is_up"]) if config.get("is_up") is not None else None,
            ip_address=_text(config.get("ip_address")),
            mac_address=_text(config.get("mac_address")),
            speed=_number(speed) if speed is not None else None,
            timestamp=_timestamp(payload["timestamp"]) if payload.get("timestamp") else None,
        )


@dataclass(frozen=True)
class ProcessRecord:
    """Resource usage of one process on the monitored host."""

    pid: int
    name: str
    status: str = "unknown"
    username: Optional[str] = None
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_rss: float = 0.0
    memory_vms: float = 0.0
    threads_count: int = 0
    create_time: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ProcessRecord":
        return cls(
            pid=_count(payload.get("pid")),
            name=str(payload.get("name") or ""),
            status=str(payload.get("status") or "unknown"),
            username=_text(payload.get("username")),
            cpu_percent=_number(payload.get("cpu_percent")),
            memory_percent=_number(payload.get("memory_percent")),
            memory_rss=_number(payload.get("memory_rss")),
            memory_vms=_number(payload.get("memory_vms")),
            threads_count=_count(payload.get("threads_count")),
            create_time=_text(payload.get("create_time")),
        )


@dataclass(frozen=True)
class NetworkConnectionRecord:
    """One socket of the monitored host."""

    protocol: str
    local_address: str
    local_port: int
    remote_address: str = ""
    remote_port: int = 0
    status: str = ""
    pid: Optional[int] = None
    process_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NetworkConnectionRecord":
        pid = payload.get("pid")
        return cls(
            protocol=str(payload.get("protocol") or ""),
            local_address=str(payload.get("local_address") or ""),
            local_port=_count(payload.get("local_port")),
            remote_address=str(payload.get("remote_address") or ""),
            remote_port=_count(payload.get("remote_port")),
            status=str(payload.get("status") or ""),
            pid=_count(pid) if pid is not None else None,
            process_name=_text(payload.get("process_name")),
        )


@dataclass(frozen=True)
class ServiceRecord:
    """Status of a system service."""

    name: str
    status: str = "unknown"
    running: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ServiceRecord":
        status = str(payload.get("status") or "unknown")
        running = payload.get("running")
        if running is None:
            running = status.lower() in ("active", "running")
        return cls(name=str(payload.get("name") or ""), status=status, running=_flag(running))
