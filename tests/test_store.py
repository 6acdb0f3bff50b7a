"""Order store: conditional insert and compare-and-swap status updates."""

from datetime import datetime, timedelta, timezone

import pytest

from orderflow.common.db import Base
from orderflow.common.models import Order
from orderflow.common.state_machine import OrderStatus
from orderflow.common.store import OrderAlreadyExistsError, TransitionOutcome


def make_order(order_id="order-1", key="key-1", created_at=None):
    return Order(
        order_id=order_id,
        idempotency_key=key,
        customer_name="Alice",
        total_amount=100.0,
        status=OrderStatus.PENDING.value,
        created_at=created_at or datetime.now(timezone.utc),
    )


def test_insert_and_lookup_by_key(store):
    store.insert_new(make_order())

    found = store.find_by_idempotency_key("key-1")
    assert found.order_id == "order-1"
    assert found.status == "PENDING"
    assert found.payment_processed_at is None
    assert store.find_by_idempotency_key("missing") is None
    assert store.get("order-1").customer_name == "Alice"
    assert store.get("nope") is None


def test_insert_rejects_existing_order_id(store):
    store.insert_new(make_order())

    with pytest.raises(OrderAlreadyExistsError):
        store.insert_new(make_order(key="key-2"))
    assert store.find_by_idempotency_key("key-2") is None


def test_duplicate_keys_are_not_blocked_and_oldest_wins(store):
    """The index is not unique: a racing duplicate can land, lookups stay stable."""

    now = datetime.now(timezone.utc)
    store.insert_new(make_order("order-b", "shared", created_at=now))
    store.insert_new(make_order("order-a", "shared", created_at=now - timedelta(seconds=1)))

    assert store.find_by_idempotency_key("shared").order_id == "order-a"


def test_transition_applies_once(store):
    store.insert_new(make_order())
    first_stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)

    first = store.transition_if_pending("order-1", OrderStatus.APPROVED, first_stamp)
    second = store.transition_if_pending(
        "order-1", OrderStatus.REJECTED, first_stamp + timedelta(hours=1)
    )

    assert first.outcome is TransitionOutcome.APPLIED
    assert first.status is OrderStatus.APPROVED
    assert second.outcome is TransitionOutcome.ALREADY_SETTLED
    order = store.get("order-1")
    assert order.status == "APPROVED"
    assert order.payment_processed_at.replace(tzinfo=timezone.utc) == first_stamp


def test_transition_on_missing_order_fails_condition(store):
    result = store.transition_if_pending("ghost", OrderStatus.APPROVED, datetime.now(timezone.utc))

    assert result.outcome is TransitionOutcome.ALREADY_SETTLED


def test_transition_reports_store_errors_as_faulted(store, session_factory):
    store.insert_new(make_order())
    Base.metadata.drop_all(session_factory.kw["bind"])

    result = store.transition_if_pending("order-1", OrderStatus.APPROVED, datetime.now(timezone.utc))

    assert result.outcome is TransitionOutcome.FAULTED
    assert result.error is not None


def test_transition_refuses_non_terminal_target(store):
    with pytest.raises(ValueError):
        store.transition_if_pending("order-1", OrderStatus.PENDING, datetime.now(timezone.utc))
