"""
MetricsRegistry - process-wide collection of named gauges and counters.

The registry only holds the latest value source for each metric; there is
no history. It performs no network or disk I/O.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Number = Union[int, float]

_WHITESPACE_RE = re.compile(r'\s+')


def sanitize(component: str) -> str:
    """Make a name component safe for a dotted Graphite path."""
    return _WHITESPACE_RE.sub('-', str(component).strip()).replace('.', '_')


class MetricName(NamedTuple):
    """
    Hierarchical metric identity: namespace, metric type, name, optional scope.

    The Graphite path is ``group.type[.scope].name``.
    """
    group: str
    type: str
    name: str
    scope: Optional[str] = None

    @property
    def path(self) -> str:
        parts = [self.group, self.type]
        if self.scope is not None and str(self.scope).strip():
            parts.append(self.scope)
        parts.append(self.name)
        return '.'.join(sanitize(p) for p in parts)

    def __str__(self) -> str:
        return self.path


class Metric(ABC):
    """Interface for registry instruments."""

    @abstractmethod
    def value(self) -> Number:
        """Return the current value."""
        pass

    def stop(self) -> None:
        """Release any per-metric resources."""
        pass


class Gauge(Metric):
    """A metric whose value is recomputed on each read."""

    def __init__(self, value_source: Callable[[], Number]):
        self._value_source = value_source

    def value(self) -> Number:
        return self._value_source()


class Counter(Metric):
    """A monotonically increasing count."""

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError("Counter increments must be non-negative")
        with self._lock:
            self._count += n

    @property
    def count(self) -> int:
        return self._count

    def value(self) -> Number:
        return self._count


class MetricsRegistry:
    """
    Thread-safe mapping from MetricName to Metric.

    Registering under a name that already exists replaces the old metric and
    logs a warning; the replaced metric is stopped.
    """

    def __init__(self):
        self._metrics: Dict[MetricName, Metric] = {}
        self._lock = threading.Lock()

    def register(self, name: MetricName,
                 metric: Union[Metric, Callable[[], Number]]) -> Metric:
        """
        Register a metric, or wrap a plain value source into a Gauge.

        Returns:
            The registered Metric instance.
        """
        if not isinstance(metric, Metric):
            if not callable(metric):
                raise TypeError(f"Cannot register {metric!r} as metric {name}")
            metric = Gauge(metric)

        with self._lock:
            previous = self._metrics.get(name)
            self._metrics[name] = metric

        if previous is not None and previous is not metric:
            logger.warning(f"Replacing existing metric [{name}]")
            previous.stop()
        return metric

    def new_gauge(self, name: MetricName, value_source: Callable[[], Number]) -> Gauge:
        return self.register(name, Gauge(value_source))

    def counter(self, name: MetricName) -> Counter:
        """Return the counter registered under ``name``, creating it if needed."""
        with self._lock:
            existing = self._metrics.get(name)
            if isinstance(existing, Counter):
                return existing
            counter = Counter()
            self._metrics[name] = counter

        if existing is not None:
            logger.warning(f"Replacing existing metric [{name}]")
            existing.stop()
        return counter

    def get(self, name: MetricName) -> Optional[Metric]:
        with self._lock:
            return self._metrics.get(name)

    def remove(self, name: MetricName) -> None:
        with self._lock:
            metric = self._metrics.pop(name, None)
        if metric is not None:
            metric.stop()

    def metrics(self) -> List[Tuple[MetricName, Metric]]:
        """Snapshot of all entries, sorted by Graphite path."""
        with self._lock:
            items = list(self._metrics.items())
        return sorted(items, key=lambda item: item[0].path)

    def for_each(self, visitor: Callable[[MetricName, Metric], None]) -> None:
        for name, metric in self.metrics():
            visitor(name, metric)

    def shutdown_all(self) -> None:
        """Stop and remove every metric. Safe to call on an empty registry."""
        with self._lock:
            metrics = list(self._metrics.values())
            self._metrics.clear()

        for metric in metrics:
            try:
                metric.stop()
            except Exception as e:
                logger.warning(f"Failed to stop metric: {e}")

        if metrics:
            logger.debug(f"Shut down {len(metrics)} metrics")

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def __contains__(self, name: MetricName) -> bool:
        with self._lock:
            return name in self._metrics
