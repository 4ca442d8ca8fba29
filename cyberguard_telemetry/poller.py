"""Periodic metrics acquisition with teardown-safe delivery."""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config.models import PollingConfig
from .controller import SourceController, SourceMode
from .utils.errors import ErrorKind
from .utils.metrics import AcquisitionOutcome, Degraded, Failure, Success
from .utils.status import ConnectionHealth

OutcomeListener = Callable[[AcquisitionOutcome], None]

# Degraded reasons that count towards escalating health to FAILED.
_CONNECTIVITY_KINDS = (ErrorKind.TIMEOUT, ErrorKind.TRANSPORT, ErrorKind.POLICY_BLOCKED)


class PollerState(Enum):
    """Lifecycle of a MetricsPoller."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class CancellationToken:
    """Flag shared by every cycle started during one start()/stop() run."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class MetricsPoller:
    """
    Drive acquisition cycles on a fixed cadence.

    ``start()`` runs one cycle immediately and schedules the rest with
    APScheduler. Each run owns a CancellationToken; ``stop()`` cancels it
    together with the scheduler. A scheduled cycle still in flight is
    cancelled outright. Out-of-band cycles (initial, refresh, mode switch)
    run to completion but their outcome is discarded. Outcomes are delivered
    in the order cycles were started: a cycle finishing after a later one
    has already been delivered is dropped.
    """

    JOB_ID = "metrics_poll"

    def __init__(
        self,
        controller: SourceController,
        config: PollingConfig,
        logger: logging.Logger = None
    ):
        """
        Initialize metrics poller.

        Args:
            controller: Source controller executed on every cycle
            config: Polling cadence, enabled flag and failure threshold
            logger: Optional logger instance
        """
        self.controller = controller
        self.interval_seconds = config.interval_seconds
        self.failure_threshold = config.failure_threshold
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

        self.state = PollerState.IDLE
        self.outcome: Optional[AcquisitionOutcome] = None
        self.health = ConnectionHealth.UNKNOWN

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._token: Optional[CancellationToken] = None
        self._listeners: List[OutcomeListener] = []
        self._inflight: Set[asyncio.Task] = set()
        self._scheduled_cycles: Set[asyncio.Task] = set()
        self._sequence = 0
        self._last_delivered = 0
        self._superseded_through = 0
        self._consecutive_connectivity_failures = 0

    @property
    def is_healthy(self) -> bool:
        return self.health is ConnectionHealth.HEALTHY

    @property
    def is_running(self) -> bool:
        return self.state is PollerState.RUNNING

    def subscribe(self, listener: OutcomeListener) -> Callable[[], None]:
        """
        Register a listener called with every delivered outcome.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Optional[asyncio.Task]:
        """
        Start polling. Must be called from a running event loop.

        Returns:
            The task running the immediate first cycle, or None if already running
        """
        if self.is_running:
            self.logger.warning("Poller already running")
            return None

        self._token = CancellationToken()
        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self._scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            args=[self._token],
            id=self.JOB_ID,
            name='Telemetry Metrics Poll',
            max_instances=1,  # Scheduled ticks never overlap
            coalesce=True,
            misfire_grace_time=max(int(self.interval_seconds), 1)
        )
        self._scheduler.start()
        self.state = PollerState.RUNNING
        self.logger.info(
            f"Poller started ({self.controller.mode.value} mode, every {self.interval_seconds:g}s)"
        )

        return self._spawn("initial")

    def stop(self) -> None:
        """Stop polling; cancel the scheduled cycle and discard out-of-band ones."""
        if not self.is_running:
            return

        self._token.cancel()
        scheduled = [task for task in self._scheduled_cycles if not task.done()]
        for task in scheduled:
            task.cancel()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self.state = PollerState.STOPPED
        self.logger.info(
            f"Poller stopped ({len(scheduled)} scheduled cycle(s) cancelled, "
            f"{len(self._inflight) - len(scheduled)} out-of-band cycle(s) will be discarded)"
        )

    def refresh(self) -> Optional[asyncio.Task]:
        """Run an out-of-band cycle without touching the schedule."""
        if not self.is_running:
            self.logger.warning("Refresh ignored: poller is not running")
            return None
        return self._spawn("refresh")

    def set_mode(self, mode: SourceMode) -> Optional[asyncio.Task]:
        """
        Switch the controller's mode and re-acquire immediately.

        Cycles started under the previous mode are superseded and will not be
        delivered.

        Returns:
            The task running the immediate cycle, or None when not running
        """
        self.controller.set_mode(mode)
        if not self.is_running:
            return None

        self._superseded_through = self._sequence
        return self._spawn("mode_switch")

    def set_enabled(self, enabled: bool) -> None:
        """Start or stop polling according to the UI's enabled flag."""
        if enabled and not self.is_running:
            self.start()
        elif not enabled and self.is_running:
            self.stop()

    async def drain(self) -> None:
        """Wait until every cycle currently in flight has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ------------------------------------------------------------------
    # Cycle execution
    # ------------------------------------------------------------------

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _spawn(self, trigger: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._run_cycle(self._token, self._next_sequence(), trigger)
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _scheduled_tick(self, token: CancellationToken) -> None:
        """APScheduler job body; awaits the cycle so max_instances applies."""
        if token.cancelled:
            return
        task = asyncio.get_running_loop().create_task(
            self._run_cycle(token, self._next_sequence(), "scheduled")
        )
        self._inflight.add(task)
        self._scheduled_cycles.add(task)
        task.add_done_callback(self._inflight.discard)
        task.add_done_callback(self._scheduled_cycles.discard)
        await task

    async def _run_cycle(self, token: CancellationToken, sequence: int, trigger: str) -> bool:
        """
        Execute one acquisition and deliver it if still allowed.

        Returns:
            bool: True if the outcome was delivered
        """
        self.logger.debug(f"Cycle {sequence} started ({trigger})")

        try:
            outcome = await self.controller.acquire()
        except Exception as e:
            self.logger.error(f"Cycle {sequence} failed: {e}", exc_info=True)
            outcome = Failure(error_kind=ErrorKind.UNEXPECTED, message=str(e))

        return self._deliver(token, sequence, outcome)

    def _deliver(self, token: CancellationToken, sequence: int, outcome: AcquisitionOutcome) -> bool:
        if token.cancelled:
            self.logger.debug(f"Cycle {sequence} discarded: poller stopped")
            return False
        if sequence <= self._superseded_through:
            self.logger.debug(f"Cycle {sequence} discarded: superseded by mode switch")
            return False
        if sequence < self._last_delivered:
            self.logger.debug(f"Cycle {sequence} discarded: cycle {self._last_delivered} already delivered")
            return False

        self._last_delivered = sequence
        self.outcome = outcome
        self._update_health(outcome)

        for listener in list(self._listeners):
            try:
                listener(outcome)
            except Exception as e:
                self.logger.error(f"Outcome listener failed: {e}", exc_info=True)

        return True

    def _update_health(self, outcome: AcquisitionOutcome) -> None:
        previous = self.health

        if isinstance(outcome, Success):
            self._consecutive_connectivity_failures = 0
            self.health = ConnectionHealth.HEALTHY
        elif isinstance(outcome, Degraded):
            if outcome.reason_kind in _CONNECTIVITY_KINDS:
                self._consecutive_connectivity_failures += 1
            else:
                self._consecutive_connectivity_failures = 0
            if self._consecutive_connectivity_failures >= self.failure_threshold:
                self.health = ConnectionHealth.FAILED
            else:
                self.health = ConnectionHealth.DEGRADED
        else:
            self.health = ConnectionHealth.FAILED

        if self.health is not previous:
            self.logger.info(f"Connection health {previous.value} -> {self.health.value}")
