"""Tests for Prometheus metrics."""

from __future__ import annotations

import time

from prometheus_client import generate_latest

from schemasync.server.metrics import SyncMetrics


def _value(metrics: SyncMetrics, name: str, labels: dict[str, str] | None = None) -> float | None:
    return metrics.registry.get_sample_value(name, labels or {})


class TestSyncMetrics:
    """Tests for SyncMetrics."""

    def test_counters(self) -> None:
        """Each record_* call should bump its counter."""
        metrics = SyncMetrics()
        metrics.record_fetch_attempt()
        metrics.record_fetch_attempt()
        metrics.record_fetch_error()
        metrics.record_apply_attempt()
        metrics.record_apply_error()

        assert _value(metrics, "db_schema_sync_s3_fetch_total") == 2
        assert _value(metrics, "db_schema_sync_s3_fetch_error_total") == 1
        assert _value(metrics, "db_schema_sync_apply_total") == 1
        assert _value(metrics, "db_schema_sync_apply_error_total") == 1
        assert _value(metrics, "db_schema_sync_apply_success_total") == 0

    def test_consecutive_failures_gauge(self) -> None:
        metrics = SyncMetrics()
        metrics.record_consecutive_failures(3)
        assert _value(metrics, "db_schema_sync_consecutive_failures") == 3
        metrics.record_consecutive_failures(0)
        assert _value(metrics, "db_schema_sync_consecutive_failures") == 0

    def test_process_start_time(self) -> None:
        before = time.time()
        metrics = SyncMetrics()
        started = _value(metrics, "db_schema_sync_process_start_time_seconds")
        assert started is not None
        assert before <= started <= time.time()

    def test_apply_success_keeps_one_version(self) -> None:
        """Only the latest applied version should be exposed."""
        metrics = SyncMetrics()
        metrics.record_apply_success("v1")
        metrics.record_apply_success("v2")

        name = "db_schema_sync_last_applied_version_info"
        assert _value(metrics, name, {"version": "v2"}) == 1
        assert _value(metrics, name, {"version": "v1"}) is None
        assert _value(metrics, "db_schema_sync_apply_success_total") == 2
        assert _value(metrics, "db_schema_sync_last_apply_timestamp_seconds") > 0

    def test_instances_are_isolated(self) -> None:
        """Two instances should not share a registry."""
        first = SyncMetrics()
        second = SyncMetrics()
        first.record_apply_attempt()

        assert _value(second, "db_schema_sync_apply_total") == 0

    def test_exposition(self) -> None:
        metrics = SyncMetrics()
        metrics.record_apply_success("20240101120000")

        text = generate_latest(metrics.registry).decode()

        assert "db_schema_sync_apply_success_total 1.0" in text
        assert 'db_schema_sync_last_applied_version_info{version="20240101120000"} 1.0' in text
