"""toolmesh telemetry - OpenTelemetry metrics."""

from .metrics import METRIC_PREFIX, MeshMetrics, MetricLabels, setup_metrics

__all__ = [
    "METRIC_PREFIX",
    "MeshMetrics",
    "MetricLabels",
    "setup_metrics",
]
