"""Prometheus metrics for transaction volume, auth rejections and webhook performance"""

from prometheus_client import Counter, Histogram

# Transaction metrics
transaction_counter = Counter(
    "ledger_transactions_total",
    "Transaction requests by type and outcome",
    ["txn_type", "outcome"],  # completed | rejected | insufficient_funds | error
)

# Auth metrics
auth_rejection_counter = Counter(
    "ledger_auth_rejections_total",
    "Rejected API key authentications",
    ["code"],  # missing_api_key | invalid_api_key | rate_limited | crypto_error
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Webhook endpoint response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook delivery attempts",
)

webhook_outcome_counter = Counter(
    "webhook_deliveries_total",
    "Final webhook delivery outcomes",
    ["outcome"],  # delivered | exhausted | serialization_error
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transaction(txn_type: str, outcome: str) -> None:
    """Record one transaction request outcome"""
    transaction_counter.labels(txn_type=txn_type, outcome=outcome).inc()
