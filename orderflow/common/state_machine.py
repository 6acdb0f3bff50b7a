"""Order status transitions enforced by settlement."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.APPROVED, OrderStatus.REJECTED},
    OrderStatus.APPROVED: set(),
    OrderStatus.REJECTED: set(),
}


def is_terminal(status: str) -> bool:
    return not ALLOWED_TRANSITIONS.get(OrderStatus(status), set())


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if OrderStatus(new) not in ALLOWED_TRANSITIONS.get(OrderStatus(current), set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
