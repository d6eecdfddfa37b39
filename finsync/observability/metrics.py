"""
Prometheus metrics collection for finsync

This module provides metrics instrumentation for monitoring sync runs,
storage write health and data quality of upstream payloads.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RUN METRICS
# =======================

sync_runs_total = Counter(
    name="finsync_runs_total",
    documentation="Total number of sync runs by final status",
    labelnames=["entity", "status"],  # status: succeeded, partial, aborted
    registry=REGISTRY,
)

sync_run_duration_seconds = Histogram(
    name="finsync_run_duration_seconds",
    documentation="Wall-clock duration of sync runs in seconds",
    labelnames=["entity"],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 1800.0],
    registry=REGISTRY,
)

records_processed_total = Counter(
    name="finsync_records_processed_total",
    documentation="Total number of upstream records processed",
    labelnames=["entity", "status"],  # status: succeeded, failed
    registry=REGISTRY,
)

pages_fetched_total = Counter(
    name="finsync_pages_fetched_total",
    documentation="Total number of upstream pages fetched",
    labelnames=["system", "entity"],
    registry=REGISTRY,
)

# =======================
# STORAGE METRICS
# =======================

upsert_batches_total = Counter(
    name="finsync_upsert_batches_total",
    documentation="Total number of upsert sub-batches",
    labelnames=["table", "status"],  # status: success, failure
    registry=REGISTRY,
)

upsert_duration_seconds = Histogram(
    name="finsync_upsert_duration_seconds",
    documentation="Time spent writing one sub-batch in seconds",
    labelnames=["table"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
    registry=REGISTRY,
)

retries_total = Counter(
    name="finsync_retries_total",
    documentation="Total number of retry attempts after transient failures",
    labelnames=["operation"],
    registry=REGISTRY,
)

# =======================
# DATA QUALITY METRICS
# =======================

currency_unresolved_total = Counter(
    name="finsync_currency_unresolved_total",
    documentation="Currency names that could not be mapped to an ISO code",
    registry=REGISTRY,
)

backup_files_total = Counter(
    name="finsync_backup_files_total",
    documentation="Audit snapshot files written",
    labelnames=["status"],  # status: written, failed
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


def record_run_completed(
    entity: str,
    status: str,
    succeeded: int,
    failed: int,
    duration_seconds: float,
) -> None:
    """
    Record the outcome of one sync run.

    Args:
        entity: Entity name (invoices, payments, ...)
        status: succeeded, partial or aborted
        succeeded: Rows persisted
        failed: Rows that could not be persisted
        duration_seconds: Wall-clock duration of the run
    """
    increment_counter(sync_runs_total, 1, entity=entity, status=status)
    if succeeded:
        increment_counter(records_processed_total, succeeded, entity=entity, status="succeeded")
    if failed:
        increment_counter(records_processed_total, failed, entity=entity, status="failed")
    observe_histogram(sync_run_duration_seconds, duration_seconds, entity=entity)
