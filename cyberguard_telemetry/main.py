"""Command-line entry point for the CyberGuard telemetry client."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from .config.loader import ConfigLoader
from .config.models import TelemetrySystemConfig
from .config.settings import Settings
from .controller import SourceMode
from .runtime import TelemetryRuntime
from .services.diagnostics import CheckStatus
from .utils.errors import TelemetryError
from .utils.formatting import format_bandwidth, format_bytes
from .utils.logger import setup_logger
from .utils.metrics import AcquisitionOutcome, Degraded, Failure, Success

DEFAULT_CONFIG_PATH = "config/config.yaml"


def describe_outcome(outcome: AcquisitionOutcome) -> str:
    """One-line operator summary of an acquisition outcome."""
    if isinstance(outcome, Failure):
        return f"FAILURE [{outcome.error_kind.value}] {outcome.message}"

    m = outcome.metrics
    summary = (
        f"cpu {m.cpu_usage:.1f}% | mem {m.memory_usage:.1f}% | disk {m.disk_usage:.1f}% | "
        f"latency {m.network_latency:.0f}ms | conns {m.active_connections} | "
        f"bw {format_bandwidth(m.bandwidth_usage)} | nodes {m.online_nodes} | threats {m.threat_count}"
    )
    if m.detail is not None and (m.detail.net_bytes_sent or m.detail.net_bytes_recv):
        summary += (
            f" | tx {format_bytes(m.detail.net_bytes_sent)}"
            f" rx {format_bytes(m.detail.net_bytes_recv)}"
        )
    if m.detail is not None and m.detail.has_alerts:
        summary += f" | alerts {m.detail.alert_count}"

    if isinstance(outcome, Degraded):
        return f"DEGRADED ({outcome.reason}) {summary}"
    return f"OK [{outcome.source.value}] {summary}"


class TelemetryApp:
    """
    Telemetry client application.

    Loads configuration, builds the runtime and runs one of the CLI actions:
    continuous polling, a single cycle, a backend collection, diagnostics,
    login or logout.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        mode: Optional[str] = None,
        log_level: str = "INFO"
    ):
        """
        Initialize telemetry application.

        Args:
            config_path: Path to configuration file (defaults used when omitted and
                config/config.yaml does not exist)
            mode: Override of polling.mode ("live" or "simulated")
            log_level: Logging level
        """
        self.config_path = config_path
        self.logger = setup_logger("cyberguard_telemetry", log_level)

        self.config = self._load_config()
        if mode:
            self.config.polling.mode = SourceMode(mode).value

        self.runtime = TelemetryRuntime(self.config, self.logger)
        self._stop_event: Optional[asyncio.Event] = None

    def _load_config(self) -> TelemetrySystemConfig:
        """
        Load and validate configuration.

        Raises:
            SystemExit: If configuration is invalid or an explicit path is missing
        """
        path = self.config_path
        if path is None:
            if not Path(DEFAULT_CONFIG_PATH).exists():
                self.logger.info(f"{DEFAULT_CONFIG_PATH} not found, using built-in defaults")
                return ConfigLoader.load_defaults()
            path = DEFAULT_CONFIG_PATH

        try:
            self.logger.info(f"Loading configuration from {path}")
            return ConfigLoader.load_from_file(path)

        except FileNotFoundError:
            self.logger.error(
                f"Configuration file not found: {path}\n"
                "Please create it from config/config.example.yaml"
            )
            sys.exit(1)

        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}", exc_info=True)
            sys.exit(1)

    def report_outcome(self, outcome: AcquisitionOutcome) -> None:
        """Log a delivered outcome at a level matching its tag."""
        health = self.runtime.health
        message = f"{health.to_emoji()} {describe_outcome(outcome)}"
        if isinstance(outcome, Success):
            self.logger.info(message, extra={"health": health.value})
        elif isinstance(outcome, Degraded):
            self.logger.warning(message, extra={"health": health.value, "reason_kind": outcome.reason_kind.value})
        else:
            self.logger.error(message, extra={"health": health.value})

    async def run_once(self) -> int:
        outcome = await self.runtime.run_once()
        self.report_outcome(outcome)
        return 1 if isinstance(outcome, Failure) else 0

    async def collect(self) -> int:
        """Trigger a backend-side collection and report the refreshed outcome."""
        try:
            outcome = await self.runtime.collect_and_refresh()
        except TelemetryError as e:
            self.logger.error(f"Metrics collection failed: {e}")
            return 1
        if outcome is None:
            return 1
        self.report_outcome(outcome)
        return 1 if isinstance(outcome, Failure) else 0

    async def run_diagnostics(self) -> int:
        checks = await self.runtime.diagnostics.run()
        for check in checks:
            self.logger.info(
                f"{check.method} {check.endpoint} [{check.name}]: {check.status.value}"
                f" ({check.duration_ms:.0f}ms)" + (f" - {check.error}" if check.error else ""),
                extra={"status_code": check.status_code, "cors_headers": check.cors_headers}
            )
        return 0 if all(check.status is CheckStatus.SUCCESS for check in checks) else 1

    async def login(self, username: str) -> int:
        try:
            session = await self.runtime.api.login(username, Settings.login_password())
        except (TelemetryError, ValueError) as e:
            self.logger.error(f"Login failed: {e}")
            return 1
        who = session.user.username if session.user else username
        self.logger.info(f"Authenticated as {who}")
        return 0

    def logout(self) -> int:
        self.runtime.api.logout()
        self.logger.info("Logged out")
        return 0

    async def run_forever(self) -> None:
        """Poll until SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler, sig)

        auth = self.config.auth
        if auth.username and auth.password and not self.runtime.api.is_authenticated():
            try:
                await self.runtime.api.login(auth.username, auth.password)
            except TelemetryError as e:
                self.logger.warning(f"Startup login failed, continuing unauthenticated: {e}")

        self.runtime.poller.subscribe(self.report_outcome)
        self.runtime.start()
        self.logger.info("Telemetry client running. Press Ctrl+C to exit.")

        try:
            await self._stop_event.wait()
        finally:
            self.runtime.stop()
            self.logger.info("Telemetry client stopped")

    def _signal_handler(self, signum):
        self.logger.info(f"Received {signal.Signals(signum).name}, initiating graceful shutdown...")
        if self._stop_event is not None:
            self._stop_event.set()


def main():
    """
    CLI entry point.

    Parses command-line arguments and runs the selected action.
    """
    parser = argparse.ArgumentParser(
        description='CyberGuard telemetry acquisition client',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll continuously (default)
  python -m cyberguard_telemetry.main

  # Single cycle with synthetic data
  python -m cyberguard_telemetry.main --run-once --mode simulated

  # Collect on the backend, then refresh
  python -m cyberguard_telemetry.main --collect

  # Check backend connectivity
  python -m cyberguard_telemetry.main --diagnose

  # Store a bearer token (password read from CYBERGUARD_PASSWORD)
  python -m cyberguard_telemetry.main --login admin
        """
    )

    parser.add_argument('--config', default=None,
                        help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH} if present)')
    parser.add_argument('--mode', choices=['live', 'simulated'], default=None,
                        help='Override the acquisition mode from the configuration')
    action = parser.add_mutually_exclusive_group()
    action.add_argument('--run-once', action='store_true',
                        help='Run one acquisition cycle and exit')
    action.add_argument('--collect', action='store_true',
                        help='Ask the backend to collect all metrics, then run one cycle')
    action.add_argument('--diagnose', action='store_true',
                        help='Check health, login preflight and metrics endpoints and exit')
    action.add_argument('--login', metavar='USERNAME',
                        help='Authenticate and persist the bearer token')
    action.add_argument('--logout', action='store_true',
                        help='Remove the persisted bearer token')
    parser.add_argument('--log-level', default=Settings.log_level(),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO or LOG_LEVEL env var)')

    args = parser.parse_args()

    try:
        app = TelemetryApp(config_path=args.config, mode=args.mode, log_level=args.log_level)

        if args.run_once:
            sys.exit(asyncio.run(app.run_once()))
        elif args.collect:
            sys.exit(asyncio.run(app.collect()))
        elif args.diagnose:
            sys.exit(asyncio.run(app.run_diagnostics()))
        elif args.login:
            sys.exit(asyncio.run(app.login(args.login)))
        elif args.logout:
            sys.exit(app.logout())
        else:
            asyncio.run(app.run_forever())

    except Exception as e:
        logging.error(f"Application startup failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
