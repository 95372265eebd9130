"""
Log event counter.

Attaches an observing handler to the logging pipeline that counts records
per severity into the metrics registry. The handler never formats, filters
or blocks a record.
"""

import logging
from typing import Dict, Optional

from .registry import Counter, MetricName, MetricsRegistry

GROUP = "logging"
TYPE = "events"

# Highest threshold first; a record counts toward the first level it reaches.
LEVELS = (
    (logging.CRITICAL, 'critical'),
    (logging.ERROR, 'error'),
    (logging.WARNING, 'warning'),
    (logging.INFO, 'info'),
    (logging.DEBUG, 'debug'),
)


class CountingHandler(logging.Handler):
    """Handler that increments a counter per record severity."""

    def __init__(self, registry: MetricsRegistry):
        super().__init__(level=logging.NOTSET)
        self.all = registry.counter(MetricName(GROUP, TYPE, 'all'))
        self.by_level: Dict[str, Counter] = {
            label: registry.counter(MetricName(GROUP, TYPE, label))
            for _, label in LEVELS
        }

    def emit(self, record: logging.LogRecord) -> None:
        self.all.inc()
        for threshold, label in LEVELS:
            if record.levelno >= threshold:
                self.by_level[label].inc()
                return

    # Records are counted unconditionally; handler filters do not apply.
    def handle(self, record: logging.LogRecord) -> bool:
        self.emit(record)
        return True


class LogCounterHandle:
    """Returned by attach(); required by detach()."""

    def __init__(self, handler: CountingHandler, target: logging.Logger):
        self.handler: Optional[CountingHandler] = handler
        self.target: Optional[logging.Logger] = target

    @property
    def attached(self) -> bool:
        return self.handler is not None


def attach(registry: MetricsRegistry, target: Optional[logging.Logger] = None) -> LogCounterHandle:
    """
    Start counting log records flowing through ``target`` (the root logger
    by default).
    """
    target = target or logging.getLogger()
    handler = CountingHandler(registry)
    target.addHandler(handler)
    return LogCounterHandle(handler, target)


def detach(handle: Optional[LogCounterHandle]) -> None:
    """Remove the handler installed by attach(). Detaching twice is a no-op."""
    if handle is None or not handle.attached:
        return
    handle.target.removeHandler(handle.handler)
    handle.handler = None
    handle.target = None
