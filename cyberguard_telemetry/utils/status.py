"""Connection health enumeration."""

from enum import Enum


class ConnectionHealth(Enum):
    """Health of the telemetry backend connection, derived from cycle outcomes."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"
    UNKNOWN = "unknown"

    def to_emoji(self) -> str:
        """
        Convert status to emoji representation.

        Returns:
            str: Emoji representing the connection health
        """
        return {
            ConnectionHealth.HEALTHY: "🟢",
            ConnectionHealth.DEGRADED: "🟡",
            ConnectionHealth.FAILED: "🔴",
            ConnectionHealth.UNKNOWN: "⚪"
        }[self]
