"""Metrics collection for the risk profiler."""

from .metrics import MetricsCollector, metrics

__all__ = [
    "MetricsCollector",
    "metrics",
]
