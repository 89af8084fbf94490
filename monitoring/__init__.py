"""Monitoring package: Prometheus metrics for the ingestion path."""

from .metrics import MetricsExporter

__all__ = ["MetricsExporter"]
