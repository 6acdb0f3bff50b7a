"""Order store operations used by intake and settlement.

Every mutation here is safe to repeat: inserts are guarded on the primary key
and status updates are a compare-and-swap on `PENDING`.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from orderflow.common.models import Order
from orderflow.common.state_machine import OrderStatus, validate_transition


class OrderAlreadyExistsError(RuntimeError):
    """Conditional insert failed: a row with this order id is already stored."""


class TransitionOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_SETTLED = "already_settled"
    FAULTED = "faulted"


@dataclass(frozen=True)
class TransitionResult:
    """Result of one conditional status update."""

    order_id: str
    outcome: TransitionOutcome
    status: OrderStatus | None = None
    error: Exception | None = None


class OrderStore:
    """Point lookups, conditional insert and conditional update over `orders`."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def get(self, order_id: str) -> Order | None:
        with self.session_factory() as db:
            return db.get(Order, order_id)

    def find_by_idempotency_key(self, idempotency_key: str) -> Order | None:
        """Secondary-index lookup; the oldest row wins if a race left several."""

        with self.session_factory() as db:
            return db.execute(
                select(Order)
                .where(Order.idempotency_key == idempotency_key)
                .order_by(Order.created_at)
                .limit(1)
            ).scalar_one_or_none()

    def insert_new(self, order: Order) -> Order:
        """Insert `order` only if its id is not taken.

        This guards against id collisions only. Duplicate idempotency keys are
        filtered by the caller's prior lookup, which is not atomic with this
        insert.
        """

        with self.session_factory() as db:
            db.add(order)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise OrderAlreadyExistsError(f"order {order.order_id} already exists") from exc
            return order

    def transition_if_pending(
        self, order_id: str, new_status: OrderStatus, processed_at: datetime
    ) -> TransitionResult:
        """Move a `PENDING` order to `new_status` and stamp `payment_processed_at`.

        A missing order or one that already left `PENDING` fails the condition
        and reports `ALREADY_SETTLED`. Store errors are returned as `FAULTED`.
        """

        validate_transition(OrderStatus.PENDING, new_status)
        with self.session_factory() as db:
            try:
                result = db.execute(
                    update(Order)
                    .where(
                        Order.order_id == order_id,
                        Order.status == OrderStatus.PENDING.value,
                    )
                    .values(
                        status=OrderStatus(new_status).value,
                        payment_processed_at=processed_at,
                    )
                )
                applied = result.rowcount == 1
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                return TransitionResult(order_id, TransitionOutcome.FAULTED, error=exc)

        if not applied:
            return TransitionResult(order_id, TransitionOutcome.ALREADY_SETTLED)
        return TransitionResult(order_id, TransitionOutcome.APPLIED, status=OrderStatus(new_status))
