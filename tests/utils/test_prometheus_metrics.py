"""Tests for PrometheusMetrics functionality."""

import pytest

from secure_fedavg.utils.prometheus_metrics import PrometheusMetrics


@pytest.fixture
def metrics():
    """Fresh PrometheusMetrics on its own registry for each test."""
    return PrometheusMetrics(coordinator_id="test_coordinator")


def test_instances_do_not_share_registries():
    first = PrometheusMetrics(coordinator_id="a")
    second = PrometheusMetrics(coordinator_id="a")
    first.emit_counter("decryption_skips_total")
    assert first.sample("fl_decryption_skips_total") == 1.0
    assert second.sample("fl_decryption_skips_total") is None


def test_counters_accumulate(metrics):
    metrics.emit_counter("submissions_total", kind="plain")
    metrics.emit_counter("submissions_total", value=2, kind="plain")
    metrics.emit_counter("submissions_total", kind="smpc_s")
    assert metrics.sample("fl_submissions_total", kind="plain") == 3.0
    assert metrics.sample("fl_submissions_total", kind="smpc_s") == 1.0


def test_gauges_hold_last_value(metrics):
    metrics.emit_gauge("current_cycle", 1.0)
    metrics.emit_gauge("current_cycle", 4.0)
    assert metrics.sample("fl_current_cycle") == 4.0


def test_timer_observes_histogram(metrics):
    metrics.emit_timer("aggregation_seconds", 0.2, mode="plain")
    assert metrics.sample("fl_aggregation_seconds_count", mode="plain") == 1.0
    assert metrics.sample("fl_aggregation_seconds_sum", mode="plain") == pytest.approx(0.2)


def test_unknown_names_are_ignored(metrics):
    metrics.emit_counter("not_a_metric")
    metrics.emit_gauge("not_a_metric", 1.0)
    metrics.emit_timer("not_a_metric", 1.0)
    assert metrics.sample("not_a_metric") is None
