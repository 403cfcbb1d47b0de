"""
Prometheus metrics for the CIP-25 sync service.

Metrics exposed:
- Kupo request success/failure counters
- Transaction outcome counters
- Candidate record outcome counters
- Sink flush and checkpoint counters
- Pass duration and pending batch gauges
"""
import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

# Kupo Metrics
kupo_requests_success_total = Counter(
    "kupo_requests_success_total",
    "Total successful Kupo requests",
    ["endpoint"]
)

kupo_requests_failure_total = Counter(
    "kupo_requests_failure_total",
    "Total failed Kupo requests",
    ["endpoint", "error_type"]
)

# Transaction Metrics
transactions_total = Counter(
    "sync_transactions_total",
    "Transactions handled by the sync engine",
    ["outcome"]  # processed, skipped, failed, dead_lettered
)

# Candidate Metrics
records_total = Counter(
    "sync_records_total",
    "Candidate asset records by recency/size outcome",
    ["outcome"]  # accepted, rejected, oversized
)

# Sink Metrics
records_flushed_total = Counter(
    "sync_records_flushed_total",
    "Asset records written to the cip25 table"
)

flush_failures_total = Counter(
    "sync_flush_failures_total",
    "Failed cip25 batch upserts"
)

checkpoint_failures_total = Counter(
    "sync_checkpoint_failures_total",
    "Failed progress checkpoint writes"
)

# Pass Metrics
last_pass_duration_seconds = Gauge(
    "sync_last_pass_duration_seconds",
    "Duration of the most recent sync pass"
)

pending_batch_size = Gauge(
    "sync_pending_batch_size",
    "Asset records resolved but not yet written"
)


def start_metrics_server(port: int) -> bool:
    """
    Start the Prometheus HTTP exporter.

    Args:
        port: Listening port (0 or negative disables the exporter)

    Returns:
        True if the exporter was started
    """
    if port <= 0:
        return False
    start_http_server(port)
    logger.info(f"Prometheus metrics exposed on port {port}")
    return True


def record_kupo_request_success(endpoint: str):
    """Record a successful Kupo request."""
    kupo_requests_success_total.labels(endpoint=endpoint).inc()


def record_kupo_request_failure(endpoint: str, error_type: str = "unknown"):
    """Record a failed Kupo request."""
    kupo_requests_failure_total.labels(endpoint=endpoint, error_type=error_type).inc()


def record_transaction(outcome: str):
    transactions_total.labels(outcome=outcome).inc()


def record_candidate(outcome: str):
    records_total.labels(outcome=outcome).inc()


def record_flush(count: int, success: bool):
    """Record the result of one sink flush."""
    if success:
        records_flushed_total.inc(count)
    else:
        flush_failures_total.inc()


def record_checkpoint_failure():
    checkpoint_failures_total.inc()


def update_pass_metrics(duration_seconds: float, pending: int):
    """Update gauges at the end of a pass."""
    last_pass_duration_seconds.set(duration_seconds)
    pending_batch_size.set(pending)
