"""Single outbound HTTP call with timeout tiers and credential attachment."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from ..config.models import BackendConfig, TimeoutsConfig
from ..utils.errors import RequestTimeoutError, TransportError, TransportKind
from .credential_store import Credential, CredentialStore


class TimeoutTier(Enum):
    """Deadline policy assigned to an outbound call."""

    HEALTH = "health"
    BULK_METRICS = "bulk_metrics"
    DEFAULT = "default"

    @classmethod
    def for_endpoint(cls, endpoint: str) -> "TimeoutTier":
        """
        Classify an endpoint path into its timeout tier.

        Args:
            endpoint: Request path, optionally with a query string

        Returns:
            TimeoutTier: HEALTH for the liveness path, BULK_METRICS for metric
            retrieval and collection paths, DEFAULT otherwise
        """
        path = endpoint.split("?", 1)[0].rstrip("/").lower()
        if path.endswith("/health"):
            return cls.HEALTH
        if "/metrics" in path or "collect" in path:
            return cls.BULK_METRICS
        return cls.DEFAULT


@dataclass(frozen=True)
class RawResponse:
    """Undecoded response body plus transport metadata."""

    text: str
    status_code: int
    content_type: str
    elapsed_ms: float
    tier: TimeoutTier
    url: str
    headers: Optional[Dict[str, str]] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


_POLICY_MARKERS = ("certificate", "ssl", "tls", "forbidden by policy")


class RequestEngine:
    """
    Issue one HTTP call against the configured backend.

    Every call is bound to the deadline of its timeout tier; expiry cancels
    the in-flight request and raises RequestTimeoutError. Connection-level
    failures raise TransportError. Any HTTP response, whatever its status, is
    returned as a RawResponse so the body can still be decoded.
    """

    def __init__(
        self,
        backend: BackendConfig,
        timeouts: TimeoutsConfig,
        credentials: CredentialStore,
        logger: logging.Logger = None
    ):
        """
        Initialize request engine.

        Args:
            backend: Backend origin and paths
            timeouts: Deadline per timeout tier
            credentials: Store consulted for the bearer token on every call
            logger: Optional logger instance
        """
        self.backend = backend
        self.timeouts = timeouts
        self.credentials = credentials
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def deadline_for(self, tier: TimeoutTier) -> float:
        """Return the deadline in seconds for a timeout tier."""
        return {
            TimeoutTier.HEALTH: self.timeouts.health_seconds,
            TimeoutTier.BULK_METRICS: self.timeouts.bulk_metrics_seconds,
            TimeoutTier.DEFAULT: self.timeouts.default_seconds,
        }[tier]

    async def execute(
        self,
        endpoint: str,
        method: str = "GET",
        tier: Optional[TimeoutTier] = None,
        credential: Optional[Credential] = None,
        params: Optional[Dict[str, Any]] = None,
        form: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        """
        Execute a single request.

        Args:
            endpoint: Path relative to the backend origin
            method: HTTP method (GET, POST or OPTIONS)
            tier: Timeout tier; classified from the endpoint when omitted
            credential: Credential to attach; the store's current one when omitted
            params: Query parameters, None values are dropped
            form: Form-encoded request body
            headers: Extra request headers

        Returns:
            RawResponse: Body text and status, for 2xx and non-2xx alike

        Raises:
            RequestTimeoutError: If the tier deadline expired
            TransportError: If no usable HTTP response was received
        """
        tier = tier or TimeoutTier.for_endpoint(endpoint)
        deadline = self.deadline_for(tier)
        method = method.upper()

        request_headers = {"Accept": "application/json"}
        credential = credential or self.credentials.get()
        if credential is not None:
            request_headers.update(credential.authorization_header())
        if headers:
            request_headers.update(headers)

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        url = f"{self.backend.base_url}{endpoint}"
        self.logger.debug(f"{method} {url} (tier={tier.value}, deadline={deadline}s)")
        start_time = time.time()

        try:
            async with httpx.AsyncClient(base_url=self.backend.base_url) as client:
                response = await asyncio.wait_for(
                    client.request(
                        method,
                        endpoint,
                        params=params or None,
                        data=form,
                        headers=request_headers,
                        timeout=deadline,
                    ),
                    timeout=deadline,
                )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self.logger.warning(f"{method} {endpoint} exceeded {deadline}s ({tier.value} tier)")
            raise RequestTimeoutError(
                f"{method} {endpoint} exceeded the {deadline}s {tier.value} deadline",
                deadline_seconds=deadline,
                tier=tier,
            ) from e

        except (httpx.ProxyError, httpx.UnsupportedProtocol) as e:
            raise self._transport_error(method, endpoint, e, TransportKind.POLICY_BLOCKED) from e

        except httpx.ConnectError as e:
            kind = TransportKind.NETWORK
            if any(marker in str(e).lower() for marker in _POLICY_MARKERS):
                kind = TransportKind.POLICY_BLOCKED
            raise self._transport_error(method, endpoint, e, kind) from e

        except httpx.TransportError as e:
            raise self._transport_error(method, endpoint, e, TransportKind.NETWORK) from e

        except httpx.RequestError as e:
            # Undecodable content encoding, redirect loops
            raise self._transport_error(method, endpoint, e, TransportKind.NETWORK) from e

        elapsed_ms = (time.time() - start_time) * 1000
        self.logger.debug(f"{method} {endpoint} -> HTTP {response.status_code} ({elapsed_ms:.0f}ms)")

        return RawResponse(
            text=response.text,
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            elapsed_ms=elapsed_ms,
            tier=tier,
            url=url,
            headers=dict(response.headers),
        )

    def _transport_error(
        self,
        method: str,
        endpoint: str,
        error: Exception,
        kind: TransportKind
    ) -> TransportError:
        self.logger.warning(f"{method} {endpoint} failed ({kind.value}): {error}")
        return TransportError(
            f"{method} {endpoint} failed ({kind.value}): {error}",
            transport_kind=kind,
            cause=error,
        )
