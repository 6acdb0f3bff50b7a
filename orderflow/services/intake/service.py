"""Order intake logic.

Replays known idempotency keys, validates new requests, persists the order in
`PENDING` and publishes an `orders.created` reference for settlement.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from pydantic import ValidationError

from orderflow.common.events import order_created_event
from orderflow.common.logging import logger, order_id_ctx
from orderflow.common.metrics import (
    order_publish_failures_total,
    order_validation_failures_total,
    orders_created_total,
    orders_replayed_total,
)
from orderflow.common.models import Order
from orderflow.common.state_machine import OrderStatus
from orderflow.common.store import OrderStore
from orderflow.services.intake.schemas import OrderCreateRequest, describe_errors


class MissingIdempotencyKeyError(ValueError):
    """Create request arrived without an `Idempotency-Key` header."""


class OrderValidationError(ValueError):
    """Create request body failed validation; carries every violation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass(frozen=True)
class IntakeResult:
    order: Order
    created: bool


def parse_order_request(body: Any) -> OrderCreateRequest:
    """Validate a decoded JSON body, reporting all field problems together."""

    try:
        return OrderCreateRequest.model_validate(body)
    except ValidationError as exc:
        raise OrderValidationError(describe_errors(exc)) from exc


class IntakeService:
    """Idempotent order creation on top of the order store and the bus."""

    def __init__(
        self,
        store: OrderStore,
        bus,
        topic: str,
        service_name: str = "intake",
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.bus = bus
        self.topic = topic
        self.service_name = service_name
        self.id_factory = id_factory or (lambda: str(uuid4()))

    async def create_order(self, body: Any, idempotency_key: str | None, trace_id: str = "") -> IntakeResult:
        """Return the order stored under `idempotency_key`, or create and publish one.

        A publish failure propagates even though the order row now exists. The
        caller retries with the same key, gets the stored order back, and a
        still-`PENDING` order has its reference published again.
        """

        if not idempotency_key or not idempotency_key.strip():
            order_validation_failures_total.labels(service=self.service_name, reason="idempotency_key").inc()
            raise MissingIdempotencyKeyError("Idempotency-Key header is required")

        existing = self.store.find_by_idempotency_key(idempotency_key)
        if existing is not None:
            order_id_ctx.set(existing.order_id)
            orders_replayed_total.labels(service=self.service_name).inc()
            logger.info("order_replayed idempotency_key=%s order_id=%s", idempotency_key, existing.order_id)
            if existing.status == OrderStatus.PENDING.value:
                # Settlement ignores references to orders that already left PENDING.
                await self._publish_created(existing.order_id, trace_id)
            return IntakeResult(order=existing, created=False)

        try:
            req = parse_order_request(body)
        except OrderValidationError:
            order_validation_failures_total.labels(service=self.service_name, reason="body").inc()
            raise

        order = Order(
            order_id=self.id_factory(),
            idempotency_key=idempotency_key,
            customer_name=req.customer_name,
            total_amount=float(req.total_amount),
            status=OrderStatus.PENDING.value,
            created_at=datetime.now(timezone.utc),
            payment_processed_at=None,
        )
        self.store.insert_new(order)
        order_id_ctx.set(order.order_id)
        orders_created_total.labels(service=self.service_name).inc()
        logger.info("order_created order_id=%s idempotency_key=%s", order.order_id, idempotency_key)

        await self._publish_created(order.order_id, trace_id)
        return IntakeResult(order=order, created=True)

    async def _publish_created(self, order_id: str, trace_id: str) -> None:
        try:
            await self.bus.publish(self.topic, order_created_event(order_id, trace_id))
        except Exception:
            order_publish_failures_total.labels(service=self.service_name).inc()
            logger.error("order_publish_failed order_id=%s topic=%s", order_id, self.topic)
            raise
