"""Prometheus Metrics Configuration"""

from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

# Create a custom registry for our metrics
registry = CollectorRegistry()

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

# ============================================================================
# Quota Metrics
# ============================================================================

quota_adjustments_total = Counter(
    'quota_adjustments_total',
    'Atomic quota adjustments by resource type and outcome',
    ['resource_type', 'result'],
    registry=registry
)

quota_updates_total = Counter(
    'quota_updates_total',
    'Quota record writes by operation and outcome',
    ['operation', 'result'],
    registry=registry
)

server_resource_edits_total = Counter(
    'server_resource_edits_total',
    'Per-server resource edit requests by outcome',
    ['result'],
    registry=registry
)

# ============================================================================
# Helper Functions
# ============================================================================


def track_request_metrics(method: str, endpoint: str, status: int, duration: float) -> None:
    """Track HTTP request metrics"""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def track_quota_adjustment(resource_type: str, result: str) -> None:
    """Track the outcome of an atomic adjustment"""
    quota_adjustments_total.labels(resource_type=resource_type, result=result).inc()


def track_quota_update(operation: str, result: str) -> None:
    """Track the outcome of a quota record write"""
    quota_updates_total.labels(operation=operation, result=result).inc()


def track_server_resource_edit(result: str) -> None:
    """Track the outcome of a server resource edit"""
    server_resource_edits_total.labels(result=result).inc()


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics data in Prometheus text format
    """
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
