"""
Standalone runner: reports a search node's metrics to Graphite until
interrupted.
"""

import argparse
import json
import logging
import os
import signal
import sys
import threading

from .exceptions import ConfigurationError
from .metrics_service import MetricsService
from .settings import Settings, SettingsFilter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search node metrics reporter")
    parser.add_argument('--config', type=str, help="JSON settings file")
    parser.add_argument('--hostname', type=str, default=os.environ.get('GRAPHITE_HOST'),
                        help="Graphite hostname")
    parser.add_argument('--port', type=int, default=os.environ.get('GRAPHITE_PORT'),
                        help="Graphite plaintext port (default 2003)")
    parser.add_argument('--prefix', type=str, default=os.environ.get('GRAPHITE_PREFIX'),
                        help="Metric name prefix")
    parser.add_argument('--interval', type=str, help="Report interval, e.g. 30s or 1m")
    parser.add_argument('--search-url', type=str, default=os.environ.get('SEARCH_URL'),
                        help="Search node URL for index statistics")
    parser.add_argument('--index', action='append', dest='indices',
                        help="Index to report the document count of (repeatable)")
    parser.add_argument('--no-process', action='store_true', help="Do not report process gauges")
    parser.add_argument('--run-for', type=float, help="Stop after this many seconds")
    parser.add_argument('--debug', action='store_true', help="Enable debug logging")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.load(args.config) if args.config else Settings()
    return settings.with_overrides({
        'metrics.graphite.hostname': args.hostname,
        'metrics.graphite.port': args.port,
        'metrics.graphite.prefix': args.prefix,
        'metrics.graphite.report_interval': args.interval,
        'metrics.stats.url': args.search_url,
        'metrics.stats.indices': args.indices,
        'metrics.stats.process': False if args.no_process else None,
    })


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=level, format='[%(levelname)s] %(message)s')

    try:
        settings = load_settings(args)
        settings_filter = SettingsFilter()
        service = MetricsService(settings, settings_filter=settings_filter)
    except ConfigurationError as e:
        logging.error(f"Invalid configuration: {e}")
        return 2

    logging.info(f"Settings: {json.dumps(settings_filter.filter_settings(settings), default=str)}")

    done = threading.Event()
    previous_handlers = {
        signum: signal.signal(signum, lambda *_: done.set())
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    service.start()
    try:
        done.wait(args.run_for)
    finally:
        service.stop()
        service.close()
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
