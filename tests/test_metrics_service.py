"""
Lifecycle tests for MetricsService.
"""

import logging
from unittest.mock import MagicMock

import pytest

from search_metrics.log_counter import CountingHandler
from search_metrics.metrics_service import Lifecycle, MetricsService
from search_metrics.registry import MetricName
from search_metrics.settings import Settings, SettingsFilter

FOO_DOCS = MetricName("search_metrics", "indices", "document count", "foo")


def _counting_handlers():
    return [h for h in logging.getLogger().handlers if isinstance(h, CountingHandler)]


@pytest.fixture
def stats_client():
    client = MagicMock()
    client.doc_count.return_value = 5
    return client


@pytest.fixture
def make_service(stats_client):
    services = []

    def _make(metrics_settings, **kwargs):
        kwargs.setdefault('stats_client', stats_client)
        service = MetricsService(Settings({'metrics': metrics_settings}), **kwargs)
        services.append(service)
        return service

    yield _make
    for service in services:
        service.close()


def _graphite(port, **extra):
    settings = {
        'graphite': {
            'hostname': '127.0.0.1',
            'port': port,
            'report_interval': '100ms',
            'prefix': 'es',
        },
        'stats': {'indices': ['foo']},
    }
    settings.update(extra)
    return settings


def test_start_creates_components_in_order(make_service, collector):
    service = make_service(_graphite(collector.port))

    service.start()

    assert service.lifecycle is Lifecycle.STARTED
    assert service.reporter.is_running()
    assert service.reporter.registry is service.registry
    assert FOO_DOCS in service.registry
    assert MetricName("logging", "events", "all") in service.registry
    assert len(_counting_handlers()) == 1


def test_reports_document_count_to_graphite(make_service, collector, stats_client):
    service = make_service(_graphite(collector.port))
    service.start()

    assert collector.wait_for(1)
    lines = collector.payloads()[0].strip().split('\n')

    assert any(line.startswith("es.search_metrics.indices.foo.document-count 5 ") for line in lines)
    assert any(line.startswith("es.logging.events.all ") for line in lines)
    stats_client.doc_count.assert_called_with("foo")


def test_close_tears_everything_down(make_service, collector):
    service = make_service(_graphite(collector.port))
    service.start()
    reporter = service.reporter
    registry = service.registry

    service.close()

    assert service.lifecycle is Lifecycle.CLOSED
    assert service.reporter is None
    assert service.registry is None
    assert not reporter.is_running()
    assert len(registry) == 0
    assert _counting_handlers() == []


def test_hooks_are_reentrant(make_service, collector):
    service = make_service(_graphite(collector.port))

    service.start()
    registry = service.registry
    reporter = service.reporter
    service.start()
    service.stop()
    service.start()

    assert service.registry is registry
    assert service.reporter is reporter
    assert len(_counting_handlers()) == 1

    service.close()
    service.close()
    service.start()

    assert service.lifecycle is Lifecycle.CLOSED
    assert service.registry is None
    assert _counting_handlers() == []


def test_stop_defers_teardown(make_service, collector):
    service = make_service(_graphite(collector.port))
    service.start()

    service.stop()

    assert service.lifecycle is Lifecycle.STOPPED
    assert service.reporter.is_running()
    assert service.registry is not None


def test_close_without_start_is_noop(make_service):
    service = make_service({})
    service.close()
    assert service.lifecycle is Lifecycle.CLOSED


def test_missing_hostname_disables_reporting_only(make_service, caplog):
    service = make_service({'stats': {'indices': ['foo']}})

    service.start()

    assert service.lifecycle is Lifecycle.STARTED
    assert service.reporter is None
    assert FOO_DOCS in service.registry
    assert len(_counting_handlers()) == 1
    assert "Invalid Graphite configuration: Graphite hostname not specified" in caplog.text


def test_reporting_disabled_skips_reporter(make_service, collector):
    service = make_service(_graphite(collector.port, enabled=False))

    service.start()

    assert service.reporter is None
    assert FOO_DOCS in service.registry


def test_process_gauges_enabled_by_default(make_service):
    service = make_service({})
    service.start()

    paths = [name.path for name, _ in service.registry.metrics()]
    assert "search_metrics.process.memory_rss" in paths
    assert "search_metrics.process.num_threads" in paths


def test_process_gauges_can_be_disabled(make_service):
    service = make_service({'stats': {'process': False}})
    service.start()

    assert not any(name.type == "process" for name, _ in service.registry.metrics())


def test_registers_settings_filter(make_service):
    settings_filter = SettingsFilter()
    make_service({}, settings_filter=settings_filter)

    filtered = settings_filter.filter_settings(Settings({
        'metrics.graphite.hostname': 'gr.test',
        'metrics.stats.password': 'secret',
        'metrics.stats.indices': ['foo'],
    }))

    assert filtered == {'metrics.stats.indices': ['foo']}


def test_builds_stats_client_from_settings():
    service = MetricsService(Settings({'metrics': {'stats': {
        'url': 'http://search:9201',
        'timeout': '2s',
        'username': 'elastic',
        'password': 'changeme',
    }}}))

    assert service.stats_client.url == 'http://search:9201'
    assert service.stats_client.timeout == 2.0
    assert service.stats_client.auth == ('elastic', 'changeme')
