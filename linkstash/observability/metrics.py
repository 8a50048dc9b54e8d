"""Prometheus metrics for the LinkStash sync engine.

This module provides metrics collection for monitoring:
- Push-channel event throughput and discards
- Collection store mutations (applied, duplicate, suppressed by tombstone)
- Channel subscriptions by connection state
- Submission and deletion outcomes
- Persistence call latency

Usage:
    from linkstash.observability.metrics import record_channel_event, record_store_mutation

    record_channel_event(kind="insert", outcome="delivered")
    record_store_mutation(operation="insert", outcome="suppressed")
"""

from __future__ import annotations

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Custom registry so several engines in one process never collide with the default one
REGISTRY = CollectorRegistry()

CHANNEL_EVENTS = Counter(
    "linkstash_channel_events_total",
    "Push-channel change events received",
    ["kind", "outcome"],
    registry=REGISTRY,
)

STORE_MUTATIONS = Counter(
    "linkstash_store_mutations_total",
    "Collection store mutations by operation and outcome",
    ["operation", "outcome"],
    registry=REGISTRY,
)

CHANNEL_SUBSCRIPTIONS = Gauge(
    "linkstash_channel_subscriptions",
    "Open channel subscriptions by connection state",
    ["state"],
    registry=REGISTRY,
)

SUBMISSIONS_TOTAL = Counter(
    "linkstash_submissions_total",
    "Bookmark submissions by status",
    ["status"],
    registry=REGISTRY,
)

DELETIONS_TOTAL = Counter(
    "linkstash_deletions_total",
    "Confirmed bookmark deletions by status",
    ["status"],
    registry=REGISTRY,
)

PERSISTENCE_LATENCY = Histogram(
    "linkstash_persistence_latency_seconds",
    "Persistence collaborator call latency in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics response."""
    return CONTENT_TYPE_LATEST


def record_channel_event(kind: str, outcome: str) -> None:
    """Record a push-channel change event.

    Args:
        kind: Event kind (insert, delete)
        outcome: What happened to it (delivered, foreign_owner, malformed)
    """
    CHANNEL_EVENTS.labels(kind=kind, outcome=outcome).inc()


def record_store_mutation(operation: str, outcome: str) -> None:
    """Record a collection store mutation.

    Args:
        operation: Store operation (seed, insert, delete)
        outcome: Result (applied, duplicate, suppressed, absent)
    """
    STORE_MUTATIONS.labels(operation=operation, outcome=outcome).inc()


def record_connection_transition(old_state: str | None, new_state: str | None) -> None:
    """Move one subscription between connection-state buckets.

    Args:
        old_state: State being left, or None for a new subscription
        new_state: State being entered, or None when the subscription stops
    """
    if old_state is not None:
        CHANNEL_SUBSCRIPTIONS.labels(state=old_state).dec()
    if new_state is not None:
        CHANNEL_SUBSCRIPTIONS.labels(state=new_state).inc()


def record_submission(status: str) -> None:
    SUBMISSIONS_TOTAL.labels(status=status).inc()


def record_deletion(status: str) -> None:
    DELETIONS_TOTAL.labels(status=status).inc()


def record_persistence_call(operation: str, latency_seconds: float) -> None:
    """Record a persistence collaborator call.

    Args:
        operation: Collaborator operation (create, list, delete)
        latency_seconds: Call latency in seconds
    """
    PERSISTENCE_LATENCY.labels(operation=operation).observe(latency_seconds)
