"""
Gauge sources.

Each factory returns a zero-argument callable suitable for
``MetricsRegistry.new_gauge``. Reads never raise: a failed read logs a
warning and reports 0 so a single bad gauge cannot abort a report tick.
"""

import logging
from typing import Callable, Dict, Optional

import psutil

from .stats_client import IndexStatsClient

logger = logging.getLogger(__name__)


def document_count_gauge(client: IndexStatsClient, index_name: str) -> Callable[[], int]:
    """
    Build a gauge reading the primaries document count of ``index_name``.

    Args:
        client: Statistics client used for the query
        index_name: Index whose document count is reported

    Returns:
        Callable returning the latest count, or 0 if the query fails
    """
    def value() -> int:
        try:
            return client.doc_count(index_name)
        except Exception as e:
            logger.warning(f"Could not collect index stats for [{index_name}]: {e}")
            return 0

    return value


def process_gauges(process: Optional[psutil.Process] = None) -> Dict[str, Callable[[], float]]:
    """
    Build gauges describing the current process (memory, CPU, threads, files).

    Returns:
        Mapping of gauge name to value source
    """
    process = process or psutil.Process()

    def guarded(name: str, read: Callable[[], float]) -> Callable[[], float]:
        def value() -> float:
            try:
                return read()
            except (psutil.Error, OSError) as e:
                logger.warning(f"Could not collect process metric [{name}]: {e}")
                return 0
        return value

    return {
        'memory_rss': guarded('memory_rss', lambda: process.memory_info().rss),
        'cpu_percent': guarded('cpu_percent', lambda: process.cpu_percent()),
        'num_threads': guarded('num_threads', lambda: process.num_threads()),
        'open_files': guarded('open_files', lambda: len(process.open_files())),
    }
