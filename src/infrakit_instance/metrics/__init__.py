"""Prometheus metrics for instance plugins."""

from infrakit_instance.metrics.collector import (
    PLUGIN_CLEANUP_ITEMS,
    PLUGIN_CLEANUP_QUEUE_SIZE,
    PLUGIN_OPERATION_DURATION,
    PLUGIN_OPERATION_ERRORS,
    track_operation,
)

__all__ = [
    "PLUGIN_CLEANUP_ITEMS",
    "PLUGIN_CLEANUP_QUEUE_SIZE",
    "PLUGIN_OPERATION_DURATION",
    "PLUGIN_OPERATION_ERRORS",
    "track_operation",
]
