"""Live/simulated source selection with transparent failover."""

import logging
from enum import Enum

from .sources.live_source import LiveSource
from .sources.simulated_source import SimulatedSource
from .utils.errors import ErrorKind, RequestTimeoutError, TelemetryError
from .utils.metrics import AcquisitionOutcome, DataSource, Degraded, Failure, Success


class SourceMode(Enum):
    """Acquisition strategy selected by the caller."""

    LIVE = "live"
    SIMULATED = "simulated"


def describe_failure(error: Exception) -> str:
    """
    Build the operator-facing reason for a degraded cycle.

    The reason starts with the error kind label (``timeout``, ``connectivity``,
    ``policy-blocked``, ``http-status``, ``malformed-payload``) so operators can
    judge how far to trust the substituted data.
    """
    kind = error.kind if isinstance(error, TelemetryError) else ErrorKind.UNEXPECTED

    if isinstance(error, RequestTimeoutError):
        detail = f"live metrics request exceeded its {error.deadline_seconds:g}s deadline"
    elif kind is ErrorKind.TRANSPORT:
        detail = f"backend unreachable ({error})"
    elif kind is ErrorKind.POLICY_BLOCKED:
        detail = f"request blocked by network policy ({error})"
    elif kind is ErrorKind.MALFORMED_PAYLOAD:
        detail = f"backend response could not be decoded ({error})"
    elif kind is ErrorKind.HTTP_STATUS:
        detail = f"backend answered with an error ({error})"
    else:
        detail = f"{type(error).__name__}: {error}"

    return f"{kind.label}: {detail}; serving simulated data"


class SourceController:
    """
    Choose between live and simulated acquisition for each cycle.

    In live mode every fetch error is recovered here by substituting a
    simulated record and returning Degraded. Only a failure of the
    simulated generator itself yields Failure.
    """

    def __init__(
        self,
        live: LiveSource,
        simulated: SimulatedSource,
        mode: SourceMode = SourceMode.LIVE,
        logger: logging.Logger = None
    ):
        self.live = live
        self.simulated = simulated
        self.mode = SourceMode(mode)
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def set_mode(self, mode: SourceMode) -> bool:
        """
        Switch acquisition mode.

        Returns:
            bool: True if the mode actually changed
        """
        mode = SourceMode(mode)
        changed = mode is not self.mode
        self.mode = mode
        if changed:
            self.logger.info(f"Source mode switched to {mode.value}")
        return changed

    async def acquire(self) -> AcquisitionOutcome:
        """Run one acquisition with the current mode."""
        if self.mode is SourceMode.SIMULATED:
            return await self._acquire_simulated()
        return await self._acquire_live()

    async def _acquire_live(self) -> AcquisitionOutcome:
        try:
            metrics = await self.live.acquire()
            return Success(metrics=metrics, source=DataSource.LIVE)
        except Exception as e:
            if not isinstance(e, TelemetryError):
                self.logger.error(f"Unexpected live acquisition error: {e}", exc_info=True)
            live_error = e

        reason = describe_failure(live_error)
        self.logger.warning(f"Live acquisition failed, falling back: {reason}")

        try:
            metrics = self.simulated.generate()
        except Exception as e:
            return self._failure(e)

        kind = live_error.kind if isinstance(live_error, TelemetryError) else ErrorKind.UNEXPECTED
        return Degraded(metrics=metrics, reason_kind=kind, reason=reason)

    async def _acquire_simulated(self) -> AcquisitionOutcome:
        try:
            metrics = await self.simulated.acquire()
        except Exception as e:
            return self._failure(e)
        return Success(metrics=metrics, source=DataSource.SIMULATED)

    def _failure(self, error: Exception) -> Failure:
        self.logger.error(f"Simulated acquisition failed: {error}", exc_info=True)
        return Failure(error_kind=ErrorKind.SIMULATION, message=f"Synthetic data unavailable: {error}")
