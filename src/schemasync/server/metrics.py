"""Prometheus metrics for schema synchronization.

Each SyncMetrics owns its own CollectorRegistry so several instances (one
per test, for example) never collide in the process-wide default registry.
prometheus_client collectors are thread-safe; the sync loop updates them
while the exporter thread reads them.
"""

from __future__ import annotations

import time

from prometheus_client import CollectorRegistry, Counter, Gauge

METRIC_PREFIX = "db_schema_sync"


class SyncMetrics:
    """Counters and gauges updated by the sync orchestrator."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        # Apply metrics
        self.apply_total = Counter(
            f"{METRIC_PREFIX}_apply_total",
            "Total number of schema apply attempts",
            registry=self.registry,
        )
        self.apply_success_total = Counter(
            f"{METRIC_PREFIX}_apply_success_total",
            "Total number of successful schema applies",
            registry=self.registry,
        )
        self.apply_error_total = Counter(
            f"{METRIC_PREFIX}_apply_error_total",
            "Total number of failed schema applies",
            registry=self.registry,
        )

        # Object store metrics
        self.s3_fetch_total = Counter(
            f"{METRIC_PREFIX}_s3_fetch_total",
            "Total number of schema fetch attempts",
            registry=self.registry,
        )
        self.s3_fetch_error_total = Counter(
            f"{METRIC_PREFIX}_s3_fetch_error_total",
            "Total number of failed schema fetches",
            registry=self.registry,
        )
        self.consecutive_failures = Gauge(
            f"{METRIC_PREFIX}_consecutive_failures",
            "Number of consecutive schema fetch failures",
            registry=self.registry,
        )

        # State
        self.last_apply_timestamp = Gauge(
            f"{METRIC_PREFIX}_last_apply_timestamp_seconds",
            "Unix time of the last successful schema apply",
            registry=self.registry,
        )
        self.process_start_time = Gauge(
            f"{METRIC_PREFIX}_process_start_time_seconds",
            "Unix time the process started",
            registry=self.registry,
        )
        self.last_applied_version = Gauge(
            f"{METRIC_PREFIX}_last_applied_version_info",
            "Last successfully applied schema version",
            ["version"],
            registry=self.registry,
        )

        self.process_start_time.set(time.time())

    def record_fetch_attempt(self) -> None:
        self.s3_fetch_total.inc()

    def record_fetch_error(self) -> None:
        self.s3_fetch_error_total.inc()

    def record_consecutive_failures(self, count: int) -> None:
        self.consecutive_failures.set(count)

    def record_apply_attempt(self) -> None:
        self.apply_total.inc()

    def record_apply_error(self) -> None:
        self.apply_error_total.inc()

    def record_apply_success(self, version: str) -> None:
        """Count a successful apply and make version the only version series."""
        self.apply_success_total.inc()
        self.last_apply_timestamp.set(time.time())
        self.last_applied_version.clear()
        self.last_applied_version.labels(version=version).set(1)
