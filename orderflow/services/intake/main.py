"""Public HTTP surface for order creation.

Run with `uvicorn orderflow.services.intake.main:build_app --factory`.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from orderflow.common.config import CommonSettings, settings
from orderflow.common.db import create_session_factory
from orderflow.common.events import KafkaBus
from orderflow.common.logging import configure_logging, log_context, logger
from orderflow.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from orderflow.common.startup import log_startup_config
from orderflow.common.store import OrderStore
from orderflow.common.tracing import instrument_app, setup_tracing
from orderflow.services.intake.schemas import OrderResponse
from orderflow.services.intake.service import IntakeService, MissingIdempotencyKeyError, OrderValidationError


def create_app(service: IntakeService) -> FastAPI:
    """Wire the intake routes around an already-built service."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        close = getattr(service.bus, "close", None)
        if close is not None:
            await close()

    app = FastAPI(title="Order Intake", lifespan=lifespan)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=service.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=service.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.post("/orders")
    async def create_order(request: Request, x_correlation_id: str | None = Header(default=None)):
        """Create an order, or replay the one already stored under the idempotency key.

        201 on creation, 200 on replay, 400 for client errors, 500 otherwise.
        """

        trace_id = x_correlation_id or str(uuid4())
        with log_context(trace_id=trace_id, order_id=None):
            return await _create_order_response(request, trace_id)

    async def _create_order_response(request: Request, trace_id: str) -> JSONResponse:
        idempotency_key = request.headers.get("idempotency-key")
        try:
            body = await request.json()
        except ValueError:
            body = None

        try:
            result = await service.create_order(body, idempotency_key, trace_id)
        except MissingIdempotencyKeyError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except OrderValidationError as exc:
            return JSONResponse(status_code=400, content={"errors": exc.errors})
        except Exception:
            logger.exception("order_create_failed idempotency_key=%s", idempotency_key)
            return JSONResponse(status_code=500, content={"error": "Failed to create order"})

        return JSONResponse(
            status_code=201 if result.created else 200,
            content=OrderResponse.from_order(result.order).to_body(),
        )

    @app.get("/orders/{order_id}")
    def get_order(order_id: str):
        """Fetch one order, including its settlement status."""

        order = service.store.get(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="order not found")
        return OrderResponse.from_order(order).to_body()

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


def build_app(config: CommonSettings = settings) -> FastAPI:
    """Process entrypoint: build clients once and inject them into the service."""

    configure_logging()
    setup_tracing(config.service_name, config.otel_exporter_otlp_endpoint)
    log_startup_config(
        config.service_name,
        ["SERVICE_NAME", "POSTGRES_DSN", "KAFKA_BOOTSTRAP_SERVERS", "ORDERS_TOPIC"],
    )
    store = OrderStore(create_session_factory(config.postgres_dsn))
    service = IntakeService(
        store,
        KafkaBus(config.kafka_bootstrap_servers),
        config.orders_topic,
        service_name=config.service_name,
    )
    app = create_app(service)
    instrument_app(app)
    return app
