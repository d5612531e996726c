"""Server module - Prometheus metrics and the health/metrics HTTP endpoint."""

from schemasync.server.app import MetricsServer, create_app, parse_address
from schemasync.server.metrics import SyncMetrics

__all__ = ["MetricsServer", "SyncMetrics", "create_app", "parse_address"]
