"""
Search metrics - Graphite reporting for a search-engine node.

Collects document counts per index, log event counts and optional process
gauges, and ships them to Graphite on a fixed interval.
"""

from .exceptions import ConfigurationError, MetricsError, QueryFailure, TransmissionFailure
from .graphite_reporter import GraphiteConfig, GraphiteReporter, ReporterState
from .metrics_service import Lifecycle, MetricsService
from .registry import Counter, Gauge, MetricName, MetricsRegistry
from .settings import Settings, SettingsFilter

__all__ = [
    "ConfigurationError",
    "Counter",
    "Gauge",
    "GraphiteConfig",
    "GraphiteReporter",
    "Lifecycle",
    "MetricName",
    "MetricsError",
    "MetricsRegistry",
    "MetricsService",
    "QueryFailure",
    "ReporterState",
    "Settings",
    "SettingsFilter",
    "TransmissionFailure",
]

__version__ = "0.1.0"
