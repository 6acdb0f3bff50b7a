"""Settlement service: Kafka batch consumer plus health/metrics endpoints.

Run with `uvicorn orderflow.services.settlement.main:build_app --factory`.
"""

import asyncio
import random
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orderflow.common.config import CommonSettings, settings
from orderflow.common.db import create_session_factory
from orderflow.common.events import consume_batches_forever
from orderflow.common.logging import configure_logging
from orderflow.common.metrics import metrics_response
from orderflow.common.startup import log_startup_config
from orderflow.common.store import OrderStore
from orderflow.common.tracing import instrument_app, setup_tracing
from orderflow.services.settlement.policy import ApprovalPolicy
from orderflow.services.settlement.service import SettlementService


def create_app(service: SettlementService, consume=None) -> FastAPI:
    """Wire settlement around a built service.

    `consume` is a zero-argument coroutine function run for the app lifetime;
    leave it out to serve only the probe endpoints.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Run the batch consumer loop with the application lifecycle."""

        consumer_task = asyncio.create_task(consume()) if consume is not None else None
        yield
        if consumer_task is not None:
            consumer_task.cancel()

    app = FastAPI(title="Payment Settlement", lifespan=lifespan)

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True, "policy": service.policy.value}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app


def build_app(config: CommonSettings = settings) -> FastAPI:
    """Process entrypoint: build clients once and inject them into the service."""

    configure_logging()
    setup_tracing(config.service_name, config.otel_exporter_otlp_endpoint)
    log_startup_config(
        config.service_name,
        [
            "SERVICE_NAME",
            "POSTGRES_DSN",
            "KAFKA_BOOTSTRAP_SERVERS",
            "ORDERS_TOPIC",
            "SETTLEMENT_GROUP_ID",
            "PAYMENT_APPROVAL_POLICY",
            "PAYMENT_REJECTION_RATE",
        ],
    )
    service = SettlementService(
        OrderStore(create_session_factory(config.postgres_dsn)),
        policy=ApprovalPolicy.from_setting(config.payment_approval_policy),
        rng=random.Random(),
        rejection_rate=config.payment_rejection_rate,
        service_name=config.service_name,
    )

    async def consume() -> None:
        await consume_batches_forever(
            config.orders_topic,
            config.settlement_group_id,
            config.kafka_bootstrap_servers,
            service.handle_batch,
        )

    app = create_app(service, consume)
    instrument_app(app)
    return app
