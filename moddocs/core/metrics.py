"""
Prometheus metrics configuration for monitoring.
"""
import time
import uuid

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"]
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"]
)

active_requests = Gauge(
    "http_requests_active",
    "Number of active HTTP requests"
)

# Storage metrics
storage_operations = Counter(
    "storage_operations_total",
    "Total storage operations",
    ["driver", "operation", "status"]
)

storage_bytes_transferred = Counter(
    "storage_bytes_transferred_total",
    "Total bytes transferred in storage operations",
    ["driver", "operation"]
)

# Domain metrics
mod_count = Gauge(
    "mods_total",
    "Total number of live mods"
)

invitation_emails = Counter(
    "invitation_emails_total",
    "Collaborator invitation emails by delivery outcome",
    ["status"]
)

auth_attempts = Counter(
    "auth_attempts_total",
    "Total authentication attempts",
    ["status"]
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.endswith("/metrics"):
            return await call_next(request)

        active_requests.inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            endpoint = self._get_endpoint_name(request)
            request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(time.perf_counter() - start_time)
            active_requests.dec()

    @staticmethod
    def _get_endpoint_name(request: Request) -> str:
        """Collapse slugs, ids and tokens so label cardinality stays bounded."""
        route = request.scope.get("route")
        if route is not None and getattr(route, "path", None):
            return route.path

        parts = []
        for part in request.url.path.split("/"):
            try:
                uuid.UUID(part)
                parts.append("{id}")
            except ValueError:
                parts.append(part)
        return "/".join(parts)


def record_storage_operation(driver: str, operation: str, bytes_transferred: int = 0, success: bool = True):
    """Record storage operation metrics."""
    status = "success" if success else "error"
    storage_operations.labels(driver=driver, operation=operation, status=status).inc()
    if bytes_transferred > 0:
        storage_bytes_transferred.labels(driver=driver, operation=operation).inc(bytes_transferred)


def record_auth_attempt(success: bool = True):
    """Record authentication attempt metrics."""
    auth_attempts.labels(status="success" if success else "failure").inc()


def record_invitation_email(delivered: bool):
    """Record invitation email delivery outcome."""
    invitation_emails.labels(status="sent" if delivered else "failed").inc()


def update_mod_count(count: int):
    """Update mod count gauge."""
    mod_count.set(count)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get Prometheus metrics content type."""
    return CONTENT_TYPE_LATEST
