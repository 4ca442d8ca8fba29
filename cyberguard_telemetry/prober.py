"""Advisory liveness probe running on its own cadence."""

import asyncio
import logging
from typing import Callable, Mapping, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config.models import HealthProbeConfig
from .decoding.decoder import ContentKind, DiagnosticFailure, ResponseDecoder
from .services.api_client import TelemetryApiClient
from .utils.errors import TelemetryError

_HEALTHY_STATES = ("healthy", "ok", "up", "pass")


class HealthProber:
    """
    Periodically check the backend liveness endpoint.

    The result only annotates overall reachability; it never influences the
    source controller's failover.
    """

    JOB_ID = "health_probe"

    def __init__(
        self,
        api: TelemetryApiClient,
        decoder: ResponseDecoder,
        config: HealthProbeConfig,
        on_change: Optional[Callable[[bool], None]] = None,
        logger: logging.Logger = None
    ):
        self.api = api
        self.decoder = decoder
        self.interval_seconds = config.interval_seconds
        self.on_change = on_change
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

        self.is_reachable = False
        self.last_error: Optional[str] = None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._initial_probe: Optional[asyncio.Task] = None

    async def probe(self) -> bool:
        """
        Run one liveness check. Never raises.

        Returns:
            bool: True if the backend reported itself healthy
        """
        try:
            response = await self.api.health_check()
        except TelemetryError as e:
            self._record(False, str(e))
            return False
        except Exception as e:
            self.logger.error(f"Health check raised unexpectedly: {e}", exc_info=True)
            self._record(False, f"{type(e).__name__}: {e}")
            return False

        if not response.ok:
            self._record(False, f"HTTP {response.status_code}")
            return False

        result = self.decoder.decode(response.text, ContentKind.from_content_type(response.content_type))
        if isinstance(result, DiagnosticFailure) or not isinstance(result.value, Mapping):
            # Plain-text or unreadable 2xx bodies still prove liveness.
            self._record(True, None)
            return True

        status = str(result.value.get("status", "healthy")).lower()
        healthy = status in _HEALTHY_STATES
        self._record(healthy, None if healthy else f"backend status '{status}'")
        return healthy

    def start(self) -> None:
        """Schedule probes every interval, starting with one immediately."""
        if self._scheduler is not None:
            return

        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self._scheduler.add_job(
            self.probe,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name='Backend Health Probe',
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._initial_probe = asyncio.get_running_loop().create_task(self.probe())
        self.logger.info(f"Health prober started (every {self.interval_seconds:g}s)")

    def stop(self) -> None:
        if self._initial_probe is not None and not self._initial_probe.done():
            self._initial_probe.cancel()
        self._initial_probe = None
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self.logger.info("Health prober stopped")

    def _record(self, reachable: bool, error: Optional[str]) -> None:
        changed = reachable != self.is_reachable
        self.is_reachable = reachable
        self.last_error = error

        if error:
            self.logger.warning(f"Health probe failed: {error}")
        if changed:
            self.logger.info(f"Backend reachable: {reachable}")
            if self.on_change is not None:
                try:
                    self.on_change(reachable)
                except Exception as e:
                    self.logger.error(f"Health change listener failed: {e}", exc_info=True)
