"""
Periodic Graphite reporter.

Every report interval a background thread snapshots the registry and sends
one plaintext line per metric to Graphite:

    <prefix>.<metric path> <value> <unix timestamp>\n

Each tick opens its own TCP connection. A failed tick is logged and dropped;
the next tick runs on schedule with fresh values.
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

import graphyte

from .exceptions import ConfigurationError, TransmissionFailure
from .registry import MetricsRegistry
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_PORT = 2003
DEFAULT_REPORT_INTERVAL = 60.0
DEFAULT_TIMEOUT = 5.0

# Extra time shutdown() waits for the reporter thread beyond the send timeout.
SHUTDOWN_GRACE = 1.0


@dataclass(frozen=True)
class GraphiteConfig:
    hostname: str
    port: int = DEFAULT_PORT
    report_interval: float = DEFAULT_REPORT_INTERVAL
    prefix: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    def validate(self) -> None:
        if not self.hostname:
            raise ConfigurationError("Graphite hostname not specified")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid Graphite port: {self.port}")
        if self.report_interval <= 0:
            raise ConfigurationError(f"Invalid report interval: {self.report_interval}")
        if self.timeout <= 0:
            raise ConfigurationError(f"Invalid Graphite timeout: {self.timeout}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphiteConfig":
        """
        Build a config from component settings (``graphite.*`` keys).

        Raises:
            ConfigurationError: If the hostname is missing or a value is invalid.
        """
        config = cls(
            hostname=settings.get('graphite.hostname'),
            port=settings.get_as_int('graphite.port', DEFAULT_PORT),
            report_interval=settings.get_as_time('graphite.report_interval', DEFAULT_REPORT_INTERVAL),
            prefix=settings.get('graphite.prefix') or None,
            timeout=settings.get_as_time('graphite.timeout', DEFAULT_TIMEOUT),
        )
        config.validate()
        return config


class ReporterState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPED = "stopped"


class GraphiteReporter:
    """
    Ships the registry to Graphite on a fixed interval.

    Usage:
        reporter = GraphiteReporter(registry, GraphiteConfig("gr.test", prefix="es"))
        reporter.start()
        ...
        reporter.shutdown()
    """

    def __init__(self, registry: MetricsRegistry, config: GraphiteConfig):
        config.validate()
        self.registry = registry
        self.config = config
        self.sender = graphyte.Sender(
            config.hostname,
            port=config.port,
            prefix=config.prefix,
            timeout=config.timeout,
        )
        self._state = ReporterState.UNINITIALIZED
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ReporterState:
        return self._state

    def is_running(self) -> bool:
        return self._state is ReporterState.RUNNING

    def start(self) -> None:
        """Start the background timer. Only valid once, from UNINITIALIZED."""
        with self._lock:
            if self._state is not ReporterState.UNINITIALIZED:
                logger.warning(f"Graphite reporter is {self._state.value}, not starting")
                return

            self._thread = threading.Thread(
                target=self._run,
                name="graphite-reporter",
                daemon=True,
            )
            self._state = ReporterState.RUNNING
            self._thread.start()

        logger.info(
            f"Starting Graphite reporter: hostname [{self.config.hostname}], "
            f"port [{self.config.port}], prefix [{self.config.prefix}], "
            f"interval [{self.config.report_interval}s]"
        )

    def shutdown(self) -> None:
        """Stop the timer and wait a bounded time for an in-flight tick. Idempotent."""
        with self._lock:
            if self._state is ReporterState.STOPPED:
                return
            was_running = self._state is ReporterState.RUNNING
            self._state = ReporterState.STOPPED
            self._stop_event.set()
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(self.config.timeout + SHUTDOWN_GRACE)
            if thread.is_alive():
                logger.warning("Graphite reporter thread did not stop within the grace period")

        if was_running:
            logger.info("Graphite reporter stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.config.report_interval):
            try:
                self.report()
            except Exception as e:
                logger.error(f"Unexpected error in Graphite report tick: {e}")

    def report(self, timestamp: Optional[float] = None) -> bool:
        """
        Run one report tick.

        Returns:
            True if the tick was sent (or there was nothing to send), False if
            the transmission failed or the reporter was shut down mid-tick.
        """
        if timestamp is None:
            timestamp = time.time()

        lines = self._build_lines(timestamp)
        if self._stop_event.is_set():
            logger.debug("Graphite reporter stopped during tick, abandoning report")
            return False
        if not lines:
            logger.debug("No metrics registered, skipping Graphite report")
            return True

        try:
            self._send(b''.join(lines))
        except TransmissionFailure as e:
            logger.error(f"Could not send metrics to Graphite: {e}")
            return False

        logger.debug(f"Sent {len(lines)} metrics to Graphite")
        return True

    def _build_lines(self, timestamp: float) -> List[bytes]:
        lines = []
        for name, metric in self.registry.metrics():
            if self._stop_event.is_set():
                break
            try:
                value = metric.value()
                if isinstance(value, bool):
                    value = int(value)
                elif not isinstance(value, (int, float)):
                    value = float(value)
                lines.append(self.sender.build_message(name.path, value, timestamp))
            except Exception as e:
                logger.warning(f"Skipping metric [{name}]: {e}")
        return lines

    def _send(self, message: bytes) -> None:
        try:
            self.sender.send_message(message)
        except OSError as e:
            raise TransmissionFailure(
                f"{self.config.hostname}:{self.config.port}: {e}"
            ) from e
