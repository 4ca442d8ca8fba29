"""Error taxonomy for telemetry acquisition."""

import re
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Classification of a failed acquisition, used in outcomes and reasons."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    POLICY_BLOCKED = "policy_blocked"
    HTTP_STATUS = "http_status"
    MALFORMED_PAYLOAD = "malformed_payload"
    SIMULATION = "simulation"
    UNEXPECTED = "unexpected"

    @property
    def label(self) -> str:
        """Short operator-facing label used as the prefix of degraded reasons."""
        return {
            ErrorKind.TIMEOUT: "timeout",
            ErrorKind.TRANSPORT: "connectivity",
            ErrorKind.POLICY_BLOCKED: "policy-blocked",
            ErrorKind.HTTP_STATUS: "http-status",
            ErrorKind.MALFORMED_PAYLOAD: "malformed-payload",
            ErrorKind.SIMULATION: "simulation",
            ErrorKind.UNEXPECTED: "unexpected",
        }[self]


class TransportKind(Enum):
    """Sub-kind of a connection-level failure."""

    NETWORK = "network"
    POLICY_BLOCKED = "policy_blocked"


_DATABASE_FAULT = re.compile(r"database|sqlalchemy|psycopg|sqlite|mysql|postgres|db error", re.IGNORECASE)


class TelemetryError(Exception):
    """Base class for every error raised by the acquisition layer."""

    kind = ErrorKind.UNEXPECTED


class TransportError(TelemetryError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, transport_kind: TransportKind = TransportKind.NETWORK,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.transport_kind = transport_kind
        self.cause = cause

    @property
    def kind(self) -> ErrorKind:
        if self.transport_kind is TransportKind.POLICY_BLOCKED:
            return ErrorKind.POLICY_BLOCKED
        return ErrorKind.TRANSPORT


class RequestTimeoutError(TelemetryError, TimeoutError):
    """The request exceeded the deadline of its timeout tier."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, deadline_seconds: float, tier: Any = None):
        super().__init__(message)
        self.deadline_seconds = deadline_seconds
        self.tier = tier


class HttpStatusError(TelemetryError):
    """The backend answered with an error status, or a 2xx carrying an error body."""

    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload

    @property
    def is_backend_fault(self) -> bool:
        return self.status_code >= 500

    @property
    def is_database_fault(self) -> bool:
        return self.is_backend_fault and bool(_DATABASE_FAULT.search(self.message or ""))


class MalformedPayloadError(TelemetryError):
    """Every recovery heuristic failed on the response body."""

    kind = ErrorKind.MALFORMED_PAYLOAD

    def __init__(self, diagnostic):
        super().__init__(
            f"Unrecoverable payload ({diagnostic.length} chars): {diagnostic.error}"
        )
        self.diagnostic = diagnostic


class AuthenticationError(TelemetryError):
    """Login was rejected or returned no token."""

    kind = ErrorKind.HTTP_STATUS


class SimulationError(TelemetryError):
    """The synthetic generator could not produce a record."""

    kind = ErrorKind.SIMULATION
