"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Legal chat gateway application info")
APP_INFO.info({"version": "1.0.0", "name": "legal_chat_gateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

PROVIDER_ATTEMPTS = Counter(
    "provider_attempts_total",
    "LLM provider attempts by outcome",
    ["provider", "outcome"],
)

QUOTA_DECISIONS = Counter(
    "quota_decisions_total",
    "Quota checks by outcome",
    ["endpoint", "outcome"],
)


# --- Middleware ---

_KNOWN_PATHS = ("/api/v1/chat", "/api/v1/suggestions", "/api/v1/health")


def _normalize_path(path: str) -> str:
    """Collapse unknown paths into one label to avoid high cardinality."""
    return path if path in _KNOWN_PATHS else "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
