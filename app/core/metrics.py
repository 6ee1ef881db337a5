from __future__ import annotations

from typing import Any, Callable

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric_or_noop(factory: Callable[[], Any]) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return factory()


_NS = settings.METRICS_NAMESPACE

REQUEST_LATENCY = _metric_or_noop(
    lambda: Histogram(
        f"{_NS}_http_request_duration_seconds",
        "HTTP request latency in seconds.",
        ["method", "path", "status_code"],
        buckets=settings.METRICS_LATENCY_BUCKETS,
    )
)

REQUEST_COUNT = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_http_requests_total",
        "Total HTTP requests processed.",
        ["method", "path", "status_code"],
    )
)

REQUEST_ERRORS = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_http_errors_total",
        "Total HTTP requests resulting in 4xx/5xx.",
        ["method", "path", "status_code"],
    )
)

LOGIN_ATTEMPTS = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_auth_login_attempts_total",
        "Authentication attempts partitioned by outcome.",
        ["outcome"],
    )
)

CART_OPERATIONS = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_cart_operations_total",
        "Cart mutations partitioned by operation and outcome.",
        ["operation", "outcome"],
    )
)

COUPONS_DROPPED = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_cart_coupons_dropped_total",
        "Coupons removed automatically after a cart mutation.",
    )
)

ORDERS_CREATED = _metric_or_noop(
    lambda: Counter(
        f"{_NS}_checkout_orders_total",
        "Checkout attempts partitioned by payment method and outcome.",
        ["payment_method", "outcome"],
    )
)


def normalize_path(request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    method = request.method
    path = normalize_path(request)
    labels = (method, path, str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(elapsed)
    if status_code >= 400:
        REQUEST_ERRORS.labels(*labels).inc()


def record_login_attempt(outcome: str) -> None:
    LOGIN_ATTEMPTS.labels(outcome=outcome).inc()


def record_cart_operation(operation: str, outcome: str) -> None:
    CART_OPERATIONS.labels(operation=operation, outcome=outcome).inc()


def record_coupon_dropped() -> None:
    COUPONS_DROPPED.inc()


def record_checkout(payment_method: str, outcome: str) -> None:
    ORDERS_CREATED.labels(payment_method=payment_method, outcome=outcome).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
