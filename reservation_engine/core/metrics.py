"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['outcome']  # confirmed, or the error code that rejected it
)

reservation_cancellations = Counter(
    'reservation_cancellations_total',
    'Total cancellation attempts',
    ['outcome']
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reserve transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Database metrics
transaction_retries = Counter(
    'db_transaction_retries_total',
    'Transactions retried after a serialization failure'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/delete, hit/miss/ok
)

cache_errors = Counter(
    'cache_errors_total',
    'Cache errors absorbed without failing the caller',
    ['operation']
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(outcome: str):
    reservation_attempts.labels(outcome=outcome).inc()


def record_cancellation(outcome: str):
    reservation_cancellations.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache read outcome."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_cache_error(operation: str):
    cache_errors.labels(operation=operation).inc()
