"""Connectivity diagnostics against the backend's key endpoints."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..utils.errors import RequestTimeoutError, TransportError, TransportKind
from .api_client import TelemetryApiClient
from .request_engine import TimeoutTier

_CORS_HEADERS = (
    "access-control-allow-origin",
    "access-control-allow-methods",
    "access-control-allow-headers",
)


class CheckStatus(Enum):
    """Result class of a single endpoint check."""

    SUCCESS = "success"
    ERROR = "error"
    POLICY = "policy"
    TIMEOUT = "timeout"


@dataclass
class EndpointCheck:
    """Outcome of probing one endpoint."""

    name: str
    endpoint: str
    method: str
    status: CheckStatus
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    cors_headers: Dict[str, Optional[str]] = field(default_factory=dict)
    error: Optional[str] = None


class ConnectivityDiagnostics:
    """Check health, login preflight and current-metrics endpoints concurrently."""

    def __init__(
        self,
        api: TelemetryApiClient,
        origin: str = "http://localhost",
        logger: logging.Logger = None
    ):
        self.api = api
        self.backend = api.backend
        self.origin = origin
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def endpoints(self) -> List[Dict[str, str]]:
        return [
            {"name": "health", "endpoint": self.backend.health_path, "method": "GET"},
            {"name": "login preflight", "endpoint": self.backend.api_path(self.backend.login_path),
             "method": "OPTIONS"},
            {"name": "current metrics", "endpoint": self.backend.api_path(self.backend.metrics_path),
             "method": "GET"},
        ]

    async def run(self) -> List[EndpointCheck]:
        """
        Check every diagnostic endpoint concurrently.

        Returns:
            List[EndpointCheck]: One result per endpoint, in endpoint order
        """
        endpoints = self.endpoints()
        self.logger.info(f"Checking {len(endpoints)} backend endpoints")

        results = await asyncio.gather(
            *(self._check(**target) for target in endpoints),
            return_exceptions=True
        )

        checks = []
        for target, result in zip(endpoints, results):
            if isinstance(result, Exception):
                self.logger.error(f"Endpoint check failed for {target['name']}: {result}")
                checks.append(EndpointCheck(
                    name=target["name"],
                    endpoint=target["endpoint"],
                    method=target["method"],
                    status=CheckStatus.ERROR,
                    error=str(result)
                ))
            else:
                checks.append(result)

        return checks

    async def _check(self, name: str, endpoint: str, method: str) -> EndpointCheck:
        start_time = time.time()
        try:
            if method == "OPTIONS":
                response = await self.api.preflight(endpoint, origin=self.origin)
            else:
                response = await self.api.engine.execute(endpoint, method=method, tier=TimeoutTier.HEALTH)
        except RequestTimeoutError as e:
            return EndpointCheck(
                name=name, endpoint=endpoint, method=method,
                status=CheckStatus.TIMEOUT,
                duration_ms=(time.time() - start_time) * 1000,
                error=f"Request timeout (>{e.deadline_seconds:g}s)"
            )
        except TransportError as e:
            status = CheckStatus.POLICY if e.transport_kind is TransportKind.POLICY_BLOCKED else CheckStatus.ERROR
            return EndpointCheck(
                name=name, endpoint=endpoint, method=method,
                status=status,
                duration_ms=(time.time() - start_time) * 1000,
                error=str(e)
            )

        response_headers = {k.lower(): v for k, v in (response.headers or {}).items()}
        return EndpointCheck(
            name=name,
            endpoint=endpoint,
            method=method,
            status=CheckStatus.SUCCESS if response.ok else CheckStatus.ERROR,
            status_code=response.status_code,
            duration_ms=response.elapsed_ms,
            cors_headers={header: response_headers.get(header) for header in _CORS_HEADERS},
            error=None if response.ok else f"HTTP {response.status_code}"
        )
