"""Prometheus metrics for the aggregation coordinator."""

from __future__ import annotations

from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from secure_fedavg.utils.logging import get_logger

logger = get_logger("prometheus_metrics")


class PrometheusMetrics:
    """
    Metrics sink backed by prometheus_client.

    Implements the same emit_* interface as InMemoryMetrics. Metrics live on a
    private registry so several coordinators (or tests) can coexist in one process.
    """

    def __init__(self, coordinator_id: str = "coordinator", registry: Optional[CollectorRegistry] = None) -> None:
        self.coordinator_id = coordinator_id
        self.registry = registry or CollectorRegistry()
        self._server_started = False

        self._counters: Dict[str, Counter] = {
            "submissions_total": Counter(
                "fl_submissions_total",
                "Accepted client submissions",
                ["coordinator_id", "kind"],
                registry=self.registry,
            ),
            "aggregation_runs_total": Counter(
                "fl_aggregation_runs_total",
                "Aggregation attempts by outcome",
                ["coordinator_id", "mode", "outcome"],
                registry=self.registry,
            ),
            "decryption_skips_total": Counter(
                "fl_decryption_skips_total",
                "Plain updates excluded from aggregation after a decryption failure",
                ["coordinator_id"],
                registry=self.registry,
            ),
        }
        self._gauges: Dict[str, Gauge] = {
            "current_cycle": Gauge(
                "fl_current_cycle",
                "Current training cycle number",
                ["coordinator_id"],
                registry=self.registry,
            ),
            "global_model_version": Gauge(
                "fl_global_model_version",
                "Latest committed global model version",
                ["coordinator_id"],
                registry=self.registry,
            ),
            "registered_clients": Gauge(
                "fl_registered_clients",
                "Number of registered clients",
                ["coordinator_id"],
                registry=self.registry,
            ),
        }
        self._timers: Dict[str, Histogram] = {
            "aggregation_seconds": Histogram(
                "fl_aggregation_seconds",
                "Time spent on aggregation",
                ["coordinator_id", "mode"],
                buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
                registry=self.registry,
            ),
        }

    def start_server(self, port: int = 8000) -> None:
        """Start the Prometheus HTTP exporter for this registry."""
        if self._server_started:
            return
        try:
            start_http_server(port, registry=self.registry)
            self._server_started = True
        except OSError as exc:
            logger.warning("Failed to start metrics exporter on port %d: %s", port, exc)

    def emit_counter(self, name: str, value: float = 1.0, **labels: str) -> None:
        metric = self._counters.get(name)
        if metric is None:
            logger.debug("Ignoring unknown counter %s", name)
            return
        metric.labels(coordinator_id=self.coordinator_id, **labels).inc(value)

    def emit_gauge(self, name: str, value: float, **labels: str) -> None:
        metric = self._gauges.get(name)
        if metric is None:
            logger.debug("Ignoring unknown gauge %s", name)
            return
        metric.labels(coordinator_id=self.coordinator_id, **labels).set(value)

    def emit_timer(self, name: str, value: float, **labels: str) -> None:
        metric = self._timers.get(name)
        if metric is None:
            logger.debug("Ignoring unknown timer %s", name)
            return
        metric.labels(coordinator_id=self.coordinator_id, **labels).observe(value)

    def sample(self, name: str, **labels: str) -> Optional[float]:
        """Read back a sample value from the private registry."""
        return self.registry.get_sample_value(name, {"coordinator_id": self.coordinator_id, **labels})
