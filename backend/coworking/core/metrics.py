"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP
request_latency = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency',
    ['method', 'status'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Reservation pipeline
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['status']  # locked, rejected, conflict, error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation request latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Availability
availability_latency = Histogram(
    'availability_latency_seconds',
    'Month availability computation latency',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1]
)

# Locks
lock_operations = Counter(
    'lock_operations_total',
    'Lock manager operations',
    ['operation']  # add, remove, refresh, purge
)

# Storage
storage_retries = Counter(
    'storage_retry_attempts_total',
    'Optimistic transaction retries due to concurrent writers'
)

# Order lifecycle
order_events = Counter(
    'order_events_total',
    'Inbound order lifecycle events',
    ['event', 'outcome']
)

# Maintenance
maintenance_purged = Counter(
    'maintenance_purged_total',
    'Records removed or repaired by maintenance sweeps',
    ['kind']  # locks, drafts, repaired
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(status: str):
    """Record reservation attempt. Status: locked, rejected, conflict, error"""
    reservation_attempts.labels(status=status).inc()


def record_lock_operation(operation: str):
    lock_operations.labels(operation=operation).inc()


def record_order_event(event: str, outcome: str):
    order_events.labels(event=event, outcome=outcome).inc()


def record_purge(kind: str, count: int):
    if count:
        maintenance_purged.labels(kind=kind).inc(count)
