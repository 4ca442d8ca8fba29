"""Typed access to the telemetry backend's REST endpoints."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config.models import BackendConfig
from ..decoding.decoder import ContentKind, DiagnosticFailure, ResponseDecoder
from ..utils.errors import AuthenticationError, HttpStatusError, MalformedPayloadError
from .credential_store import CredentialStore
from .records import (
    NetworkConnectionRecord,
    NetworkInterfaceMetrics,
    ProcessRecord,
    ServiceRecord,
    records_from,
)
from .request_engine import RawResponse, RequestEngine, TimeoutTier

TimeBound = Union[datetime, str, None]


@dataclass(frozen=True)
class UserDescriptor:
    """Backend account returned by login and the current-user endpoint."""

    id: int
    username: str
    is_active: bool = True
    is_superuser: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UserDescriptor":
        return cls(
            id=int(payload.get("id") or 0),
            username=str(payload.get("username") or ""),
            is_active=bool(payload.get("is_active", True)),
            is_superuser=bool(payload.get("is_superuser", False)),
            created_at=payload.get("created_at"),
        )


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful login."""

    access_token: str
    token_type: str
    user: Optional[UserDescriptor]


def _error_message(payload: Any, status_code: int) -> str:
    if isinstance(payload, Mapping):
        for key in ("detail", "message", "error", "msg"):
            value = payload.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return f"HTTP error! status: {status_code}"


def _is_error_envelope(value: Any) -> bool:
    """True for the envelope rebuilt from a truncated error body."""
    return isinstance(value, Mapping) and value.get("reconstructed") is True


def _time_window(start_time: TimeBound, end_time: TimeBound) -> Dict[str, Optional[str]]:
    def bound(value: TimeBound) -> Optional[str]:
        return value.isoformat() if isinstance(value, datetime) else value

    return {"start_time": bound(start_time), "end_time": bound(end_time)}


class TelemetryApiClient:
    """
    Endpoint catalogue of the metrics backend.

    Wraps the request engine and the response decoder: successful responses
    are returned decoded, non-2xx responses raise HttpStatusError with whatever
    could be decoded from the body, and undecodable bodies raise
    MalformedPayloadError. A 2xx whose body could only be rebuilt as an error
    envelope also raises HttpStatusError. A 401 invalidates the stored
    credential.
    """

    def __init__(
        self,
        backend: BackendConfig,
        engine: RequestEngine,
        decoder: ResponseDecoder,
        credentials: CredentialStore,
        logger: logging.Logger = None
    ):
        self.backend = backend
        self.engine = engine
        self.decoder = decoder
        self.credentials = credentials
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> AuthSession:
        """
        Submit form-encoded credentials and store the returned bearer token.

        Raises:
            AuthenticationError: If the backend rejects the login or sends no token
            RequestTimeoutError, TransportError, MalformedPayloadError: On transport
                or decoding problems
        """
        try:
            payload = await self._request(
                self.backend.api_path(self.backend.login_path),
                method="POST",
                form={"username": username, "password": password, "grant_type": "password"},
            )
        except HttpStatusError as e:
            raise AuthenticationError(f"Login rejected: {e.message}") from e

        token = payload.get("access_token") if isinstance(payload, Mapping) else None
        if not token:
            raise AuthenticationError("Login response did not contain an access token")

        user_payload = payload.get("user") if isinstance(payload.get("user"), Mapping) else None
        self.credentials.set(
            token,
            token_type=payload.get("token_type") or "bearer",
            user=dict(user_payload) if user_payload else None,
        )
        self.logger.info(f"Logged in as {username}")

        return AuthSession(
            access_token=token,
            token_type=payload.get("token_type") or "bearer",
            user=UserDescriptor.from_payload(user_payload) if user_payload else None,
        )

    def logout(self) -> None:
        """Forget the stored credential."""
        self.credentials.clear()

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()

    async def current_user(self) -> UserDescriptor:
        payload = await self._request(self.backend.api_path(self.backend.current_user_path))
        return UserDescriptor.from_payload(payload if isinstance(payload, Mapping) else {})

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def fetch_current_metrics(self) -> Any:
        """Return the decoded current system metrics record."""
        return await self._request(
            self.backend.api_path(self.backend.metrics_path),
            tier=TimeoutTier.BULK_METRICS,
        )

    async def fetch_metrics_summary(self) -> Any:
        """Return the decoded metrics summary record."""
        return await self._request(
            self.backend.api_path(self.backend.summary_path),
            tier=TimeoutTier.BULK_METRICS,
        )

    async def fetch_metrics_history(
        self,
        start_time: TimeBound = None,
        end_time: TimeBound = None
    ) -> List[Mapping[str, Any]]:
        """
        Return stored system metrics records, oldest first.

        Args:
            start_time: Only records at or after this instant
            end_time: Only records at or before this instant
        """
        payload = await self._request(
            self.backend.api_path(self.backend.history_path),
            tier=TimeoutTier.BULK_METRICS,
            params=_time_window(start_time, end_time),
        )
        return records_from(payload, dict)

    async def collect_metrics(self) -> Any:
        """Ask the backend to sample system metrics now; returns its decoded reply."""
        return await self._request(self.backend.api_path(self.backend.collect_path), method="POST")

    async def collect_all_metrics(self) -> Any:
        """Ask the backend to sample processes, connections and services in one call."""
        return await self._request(self.backend.api_path(self.backend.collect_all_path), method="POST")

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def fetch_network_interfaces(
        self,
        start_time: TimeBound = None,
        end_time: TimeBound = None
    ) -> List[NetworkInterfaceMetrics]:
        payload = await self._request(
            self.backend.api_path(self.backend.network_interfaces_path),
            params=_time_window(start_time, end_time),
        )
        return records_from(payload, NetworkInterfaceMetrics.from_payload)

    async def fetch_current_network_metrics(self) -> List[NetworkInterfaceMetrics]:
        payload = await self._request(self.backend.api_path(self.backend.current_network_path))
        return records_from(payload, NetworkInterfaceMetrics.from_payload)

    async def fetch_processes(self, skip: Optional[int] = None, limit: Optional[int] = None) -> List[ProcessRecord]:
        payload = await self._request(
            self.backend.api_path(self.backend.processes_path),
            params={"skip": skip, "limit": limit},
        )
        return records_from(payload, ProcessRecord.from_payload)

    async def collect_process_metrics(self) -> List[ProcessRecord]:
        payload = await self._collect(self.backend.processes_path)
        return records_from(payload, ProcessRecord.from_payload)

    async def fetch_network_connections(
        self,
        skip: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[NetworkConnectionRecord]:
        payload = await self._request(
            self.backend.api_path(self.backend.connections_path),
            params={"skip": skip, "limit": limit},
        )
        return records_from(payload, NetworkConnectionRecord.from_payload)

    async def collect_network_connections(self) -> List[NetworkConnectionRecord]:
        payload = await self._collect(self.backend.connections_path)
        return records_from(payload, NetworkConnectionRecord.from_payload)

    async def fetch_services(self, skip: Optional[int] = None, limit: Optional[int] = None) -> List[ServiceRecord]:
        payload = await self._request(
            self.backend.api_path(self.backend.services_path),
            params={"skip": skip, "limit": limit},
        )
        return records_from(payload, ServiceRecord.from_payload)

    async def collect_service_status(self) -> List[ServiceRecord]:
        payload = await self._collect(self.backend.services_path)
        return records_from(payload, ServiceRecord.from_payload)

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def health_check(self) -> RawResponse:
        """GET the liveness endpoint on the health tier; the raw response is returned."""
        return await self.engine.execute(self.backend.health_path, tier=TimeoutTier.HEALTH)

    async def preflight(self, path: str, origin: str = "http://localhost") -> RawResponse:
        """Send a CORS preflight (OPTIONS) request for ``path``."""
        return await self.engine.execute(
            path,
            method="OPTIONS",
            tier=TimeoutTier.HEALTH,
            headers={
                "Origin": origin,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type, Authorization",
            },
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _collect(self, path: str) -> Any:
        # Collection endpoints sit below their listing path, e.g. /system/processes/collect
        return await self._request(
            self.backend.api_path(f"{path.rstrip('/')}/collect"),
            method="POST",
            tier=TimeoutTier.BULK_METRICS,
        )

    async def _request(
        self,
        endpoint: str,
        method: str = "GET",
        tier: Optional[TimeoutTier] = None,
        form: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = await self.engine.execute(endpoint, method=method, tier=tier, params=params, form=form)
        result = self.decoder.decode(response.text, ContentKind.JSON)

        if response.ok:
            if isinstance(result, DiagnosticFailure):
                raise MalformedPayloadError(result)
            if not result.recovered:
                return result.value

            self.logger.warning(f"{method} {endpoint} body needed recovery ({result.recovered_by})")
            if not _is_error_envelope(result.value):
                return result.value

            # A 2xx carrying a truncated error body is an error, not data.
            code = result.value.get("code")
            status_code = code if isinstance(code, int) and code >= 400 else 502
            raise self._status_error(endpoint, status_code, result.value)

        payload = None if isinstance(result, DiagnosticFailure) else result.value
        raise self._status_error(endpoint, response.status_code, payload)

    def _status_error(self, endpoint: str, status_code: int, payload: Any) -> HttpStatusError:
        error = HttpStatusError(status_code, _error_message(payload, status_code), payload)

        if status_code == 401:
            self.logger.warning("Backend rejected the bearer token; clearing credential")
            self.credentials.clear()
        elif error.is_database_fault:
            self.logger.error(f"Backend database fault on {endpoint}: {error.message}")
        elif error.is_backend_fault:
            self.logger.error(f"Backend fault on {endpoint}: {error.message}")

        return error
