"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Registration metrics
registration_attempts = Counter(
    "registration_attempts_total",
    "Total event registration attempts",
    ["result"],  # confirmed, full, duplicate, rejected
)

unregistrations = Counter(
    "unregistrations_total",
    "Registrations cancelled by their attendee",
)

registration_latency = Histogram(
    "registration_latency_seconds",
    "Register call latency, including the capacity update",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Event lifecycle metrics
event_mutations = Counter(
    "events_mutations_total",
    "Event create/update/delete operations",
    ["operation"],  # create, update, delete, cover, file_delete
)

# Cache metrics
cache_operations = Counter(
    "cache_operations_total",
    "Cache operations",
    ["operation", "result"],  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus scrape target."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_registration_attempt(result: str):
    """Record a register call outcome. Result: confirmed, full, duplicate, rejected"""
    registration_attempts.labels(result=result).inc()


def record_unregistration():
    unregistrations.inc()


def record_event_mutation(operation: str):
    event_mutations.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
