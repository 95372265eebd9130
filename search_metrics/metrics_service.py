"""
Main metrics coordinator, driven by the host's lifecycle hooks.
"""

import enum
import logging
import threading
from typing import Optional

from .exceptions import ConfigurationError
from .gauges import document_count_gauge, process_gauges
from .graphite_reporter import GraphiteConfig, GraphiteReporter
from .log_counter import LogCounterHandle, attach, detach
from .registry import MetricName, MetricsRegistry
from .settings import MetricsSettingsFilter, Settings, SettingsFilter
from .stats_client import DEFAULT_URL, IndexStatsClient

COMPONENT = "metrics"
GROUP = "search_metrics"


class Lifecycle(enum.Enum):
    INITIALIZED = "initialized"
    STARTED = "started"
    STOPPED = "stopped"
    CLOSED = "closed"


class MetricsService:
    """
    Wires the registry, Graphite reporter, log counter and gauges into the
    host's start/stop/close hooks.

    Features:
    - Reporting failures never propagate to the host
    - Misconfigured reporting disables the reporter only
    - Every hook may be called repeatedly
    """

    def __init__(self, settings: Settings,
                 settings_filter: Optional[SettingsFilter] = None,
                 stats_client: Optional[IndexStatsClient] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize metrics service.

        Args:
            settings: Host settings; the service reads the ``metrics.*`` component
            settings_filter: Host settings filter to register redaction with
            stats_client: Statistics client for index gauges (built from
                ``stats.*`` settings when omitted)
            logger: Logger instance for service messages
        """
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings.component(COMPONENT)
        self.stats_client = stats_client or IndexStatsClient(
            url=self.settings.get('stats.url', DEFAULT_URL),
            timeout=self.settings.get_as_time('stats.timeout', 10.0),
            username=self.settings.get('stats.username'),
            password=self.settings.get('stats.password'),
        )

        self.lifecycle = Lifecycle.INITIALIZED
        self._lock = threading.RLock()
        self._registry: Optional[MetricsRegistry] = None
        self._reporter: Optional[GraphiteReporter] = None
        self._log_handle: Optional[LogCounterHandle] = None

        if settings_filter is not None:
            settings_filter.add_filter(MetricsSettingsFilter())

    @property
    def registry(self) -> Optional[MetricsRegistry]:
        return self._registry

    @property
    def reporter(self) -> Optional[GraphiteReporter]:
        return self._reporter

    # Host lifecycle hooks

    def start(self) -> None:
        with self._lock:
            if self.lifecycle in (Lifecycle.STARTED, Lifecycle.CLOSED):
                self.logger.debug(f"Metrics service is {self.lifecycle.value}, ignoring start")
                return
            try:
                self._create_metrics()
            except Exception as e:
                self.logger.warning(f"Failed to initialize metrics: {e}")
                self.logger.info("Continuing with partial metrics")
            self.lifecycle = Lifecycle.STARTED

    def stop(self) -> None:
        """Teardown is deferred to close()."""
        with self._lock:
            if self.lifecycle is Lifecycle.STARTED:
                self.lifecycle = Lifecycle.STOPPED

    def close(self) -> None:
        with self._lock:
            if self.lifecycle is Lifecycle.CLOSED:
                return
            self._destroy_metrics()
            self.lifecycle = Lifecycle.CLOSED

    # Creation, in dependency order

    def _create_metrics(self) -> None:
        self._create_registry()
        self._create_graphite_reporter()
        self._create_logging_metrics()
        self._create_local_metrics()

    def _create_registry(self) -> None:
        with self._lock:
            if self._registry is None:
                self._registry = MetricsRegistry()

    def _create_graphite_reporter(self) -> None:
        with self._lock:
            if self._reporter is not None:
                return

            try:
                if not self.settings.get_as_bool('enabled', True):
                    self.logger.info("Graphite reporting disabled in configuration")
                    return

                config = GraphiteConfig.from_settings(self.settings)
                self._reporter = GraphiteReporter(self._registry, config)
                self._reporter.start()
            except ConfigurationError as e:
                self.logger.error(f"Invalid Graphite configuration: {e}")
                self.logger.info("Continuing without Graphite reporting")
                self._reporter = None

    def _create_logging_metrics(self) -> None:
        with self._lock:
            if self._log_handle is None:
                self._log_handle = attach(self._registry)

    def _create_local_metrics(self) -> None:
        with self._lock:
            for index_name in self.settings.get_as_list('stats.indices'):
                self.logger.debug(f"Enabling index metrics for [{index_name}]")
                name = MetricName(GROUP, "indices", "document count", index_name)
                if name not in self._registry:
                    self._registry.new_gauge(name, document_count_gauge(self.stats_client, index_name))

            if self.settings.get_as_bool('stats.process', True):
                self.logger.debug("Enabling process metrics")
                for gauge_name, gauge in process_gauges().items():
                    name = MetricName(GROUP, "process", gauge_name)
                    if name not in self._registry:
                        self._registry.new_gauge(name, gauge)

    # Teardown, in reverse order

    def _destroy_metrics(self) -> None:
        self._destroy_graphite_reporter()
        self._destroy_logging_metrics()
        self._destroy_local_metrics()

    def _destroy_graphite_reporter(self) -> None:
        with self._lock:
            if self._reporter is not None:
                self._reporter.shutdown()
                self._reporter = None

    def _destroy_logging_metrics(self) -> None:
        with self._lock:
            if self._log_handle is not None:
                detach(self._log_handle)
                self._log_handle = None

    def _destroy_local_metrics(self) -> None:
        with self._lock:
            if self._registry is not None:
                self._registry.shutdown_all()
                self._registry = None
