"""Observability module for sync engine metrics."""

from linkstash.observability.metrics import (
    CHANNEL_EVENTS,
    CHANNEL_SUBSCRIPTIONS,
    DELETIONS_TOTAL,
    PERSISTENCE_LATENCY,
    STORE_MUTATIONS,
    SUBMISSIONS_TOTAL,
    get_metrics,
    get_metrics_content_type,
    record_channel_event,
    record_connection_transition,
    record_deletion,
    record_persistence_call,
    record_store_mutation,
    record_submission,
)

__all__ = [
    "CHANNEL_EVENTS",
    "CHANNEL_SUBSCRIPTIONS",
    "DELETIONS_TOTAL",
    "PERSISTENCE_LATENCY",
    "STORE_MUTATIONS",
    "SUBMISSIONS_TOTAL",
    "get_metrics",
    "get_metrics_content_type",
    "record_channel_event",
    "record_connection_transition",
    "record_deletion",
    "record_persistence_call",
    "record_store_mutation",
    "record_submission",
]
