"""Prometheus metric definitions shared across services."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
orders_created_total = Counter("orders_created_total", "Orders created", ["service"])
orders_replayed_total = Counter(
    "orders_replayed_total",
    "Create requests answered from an existing idempotency key",
    ["service"],
)
order_validation_failures_total = Counter(
    "order_validation_failures_total",
    "Create requests rejected as client errors",
    ["service", "reason"],
)
order_publish_failures_total = Counter(
    "order_publish_failures_total",
    "Orders persisted whose created event could not be published",
    ["service"],
)
settlement_decisions_total = Counter(
    "settlement_decisions_total",
    "Approval decisions applied to pending orders",
    ["service", "status"],
)
settlement_outcomes_total = Counter(
    "settlement_outcomes_total",
    "Conditional status update outcomes",
    ["service", "outcome"],
)
event_queue_delay_seconds = Histogram(
    "event_queue_delay_seconds",
    "Event queue delay seconds between occurred_at and consume time",
    ["service", "topic"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
