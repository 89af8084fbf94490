"""Prometheus metrics exporter for ingestion and alerting observability."""

from __future__ import annotations

import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

_server_lock = threading.Lock()
_server_started_ports: set[int] = set()


class MetricsExporter:
    """Expose ingestion and alerting metrics via Prometheus.

    Each exporter owns its own registry so several instances (one per
    test, or one per store) never collide on metric names. Pass ``port``
    to also serve the registry over HTTP.
    """

    def __init__(self, port: Optional[int] = None, registry: Optional[CollectorRegistry] = None) -> None:
        self.port = port
        self.registry = registry or CollectorRegistry()
        if port is not None:
            with _server_lock:
                if port not in _server_started_ports:
                    start_http_server(port, registry=self.registry)
                    _server_started_ports.add(port)

        self.readings_ingested = Counter(
            "crowd_readings_ingested_total",
            "Readings accepted and persisted",
            ["camera"],
            registry=self.registry,
        )
        self.readings_rejected = Counter(
            "crowd_readings_rejected_total",
            "Readings rejected before persistence",
            ["reason"],
            registry=self.registry,
        )
        self.alerts_opened = Counter(
            "crowd_alerts_opened_total",
            "Crowd density alerts opened by the threshold engine",
            ["severity"],
            registry=self.registry,
        )
        self.alert_errors = Counter(
            "crowd_alert_evaluation_errors_total",
            "Alert evaluations that failed after the reading was stored",
            ["category"],
            registry=self.registry,
        )
        self.ingest_latency = Histogram(
            "crowd_ingest_latency_seconds",
            "Time spent validating, storing and evaluating one reading",
            registry=self.registry,
        )

    def record_ingested(self, camera_id: str, latency_s: float) -> None:
        self.readings_ingested.labels(camera_id).inc()
        self.ingest_latency.observe(max(latency_s, 0.0))

    def record_rejected(self, reason: str) -> None:
        self.readings_rejected.labels(reason).inc()

    def record_alert_opened(self, severity: str) -> None:
        self.alerts_opened.labels(severity).inc()

    def record_alert_error(self, category: str) -> None:
        self.alert_errors.labels(category).inc()

    def sample(self, name: str, **labels: str) -> float:
        """Return the current value of a sample, or 0.0 if never recorded."""
        value = self.registry.get_sample_value(name, labels or None)
        return value if value is not None else 0.0
