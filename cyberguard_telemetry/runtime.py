"""Composition root wiring the acquisition layer together."""

import logging
from typing import Optional

from .config.models import TelemetrySystemConfig
from .controller import SourceController, SourceMode
from .decoding.decoder import ResponseDecoder
from .poller import MetricsPoller
from .prober import HealthProber
from .services.api_client import TelemetryApiClient
from .services.credential_store import CredentialStore
from .services.diagnostics import ConnectivityDiagnostics
from .services.normalizer import MetricsNormalizer
from .services.request_engine import RequestEngine
from .sources.live_source import LiveSource
from .sources.simulated_source import SimulatedSource
from .utils.logger import setup_logger
from .utils.metrics import AcquisitionOutcome
from .utils.status import ConnectionHealth


class TelemetryRuntime:
    """
    Own every component of the telemetry acquisition layer.

    The credential store is constructed here and passed explicitly to the
    request engine and API client; nothing else holds global state.
    """

    def __init__(
        self,
        config: TelemetrySystemConfig,
        logger: logging.Logger = None,
        credentials: Optional[CredentialStore] = None
    ):
        """
        Build the component graph.

        Args:
            config: System configuration
            logger: Optional logger instance
            credentials: Pre-built credential store (defaults to one backed by
                auth.token_file)
        """
        self.config = config
        self.logger = logger or setup_logger("cyberguard_telemetry")

        self.credentials = credentials or CredentialStore(config.auth.token_file, self.logger)
        self.engine = RequestEngine(config.backend, config.timeouts, self.credentials, self.logger)
        self.decoder = ResponseDecoder(logger=self.logger)
        self.normalizer = MetricsNormalizer(self.logger)
        self.api = TelemetryApiClient(
            config.backend, self.engine, self.decoder, self.credentials, self.logger
        )

        self.live_source = LiveSource(self.api, self.normalizer, self.logger)
        self.simulated_source = SimulatedSource(
            self.normalizer, self.logger, seed=config.simulation.seed
        )
        self.controller = SourceController(
            self.live_source,
            self.simulated_source,
            mode=SourceMode(config.polling.mode),
            logger=self.logger
        )
        self.poller = MetricsPoller(self.controller, config.polling, self.logger)
        self.prober = HealthProber(self.api, self.decoder, config.health_probe, logger=self.logger)
        self.diagnostics = ConnectivityDiagnostics(self.api, logger=self.logger)

    # Caller-facing surface

    @property
    def outcome(self) -> Optional[AcquisitionOutcome]:
        return self.poller.outcome

    @property
    def health(self) -> ConnectionHealth:
        return self.poller.health

    @property
    def is_healthy(self) -> bool:
        return self.poller.is_healthy

    @property
    def is_reachable(self) -> bool:
        return self.prober.is_reachable

    def start(self) -> None:
        """Start polling (when enabled) and health probing. Requires a running loop."""
        if self.config.polling.enabled:
            self.poller.start()
        else:
            self.logger.info("Polling disabled by configuration")
        if self.config.health_probe.enabled:
            self.prober.start()

    def stop(self) -> None:
        self.poller.stop()
        self.prober.stop()

    def refresh(self):
        return self.poller.refresh()

    def set_mode(self, mode: SourceMode):
        return self.poller.set_mode(mode)

    async def run_once(self) -> AcquisitionOutcome:
        """Run a single acquisition outside the poller."""
        return await self.controller.acquire()

    async def collect_and_refresh(self) -> Optional[AcquisitionOutcome]:
        """
        Ask the backend to collect every metric family, then re-acquire.

        Re-acquisition goes through the poller when it is running, so the
        outcome is delivered to its listeners; otherwise one cycle is run
        directly.

        Raises:
            TelemetryError: If the collection request failed; no cycle is run
        """
        await self.api.collect_all_metrics()
        self.logger.info("Backend collection completed, refreshing metrics")

        if self.poller.is_running:
            await self.poller.refresh()
            return self.poller.outcome
        return await self.run_once()
