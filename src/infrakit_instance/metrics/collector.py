"""Prometheus metrics definitions for instance plugins.

Plugin metrics track backend-facing work:
- Plugin operations (validate, provision, destroy, describe) per backend
- Deferred cleanup queue depth and outcomes
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================
# VM clones and EC2 calls range from sub-second to minutes
_BUCKETS_SLOW = (
    0.05, 0.1, 0.2, 0.4, 0.8,
    1.5, 3, 6, 12, 24,
    48, 96, 180,
)  # 13 buckets

# =============================================================================
# Plugin Operation Metrics
# =============================================================================

PLUGIN_OPERATION_DURATION = Histogram(
    "infrakit_instance_operation_duration_seconds",
    "Duration of instance plugin operations",
    ["backend", "operation"],  # operation: validate, provision, destroy, describe
    buckets=_BUCKETS_SLOW,
)

PLUGIN_OPERATION_ERRORS = Counter(
    "infrakit_instance_operation_errors_total",
    "Total instance plugin operation errors",
    ["backend", "operation"],
)

# =============================================================================
# Cleanup Queue Metrics
# =============================================================================

PLUGIN_CLEANUP_QUEUE_SIZE = Gauge(
    "infrakit_instance_cleanup_queue_size",
    "Items waiting in the deferred cleanup queue",
)

PLUGIN_CLEANUP_ITEMS = Counter(
    "infrakit_instance_cleanup_items_total",
    "Deferred cleanup items processed",
    ["result"],  # completed, failed
)


# =============================================================================
# Metric Initialization
# =============================================================================

def _init_metrics() -> None:
    """Initialize labeled metrics with zero values."""
    for backend in ["ebs", "fusion"]:
        for op in ["validate", "provision", "destroy", "describe"]:
            PLUGIN_OPERATION_DURATION.labels(backend=backend, operation=op)
            PLUGIN_OPERATION_ERRORS.labels(backend=backend, operation=op)

    for result in ["completed", "failed"]:
        PLUGIN_CLEANUP_ITEMS.labels(result=result)


_init_metrics()


@contextmanager
def track_operation(backend: str, operation: str) -> Iterator[None]:
    """Record duration of a plugin operation and count it if it raises."""
    start = time.perf_counter()
    try:
        yield
    except Exception:
        PLUGIN_OPERATION_ERRORS.labels(backend=backend, operation=operation).inc()
        raise
    finally:
        PLUGIN_OPERATION_DURATION.labels(backend=backend, operation=operation).observe(
            time.perf_counter() - start
        )
