"""Request/response schemas for the intake endpoints.

Clients speak camelCase JSON; models accept either alias or field name.
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from orderflow.common.models import Order


# Matches the NUMERIC(12, 2) `orders.total_amount` column.
MAX_TOTAL_AMOUNT = 9_999_999_999.99
AMOUNT_DECIMAL_PLACES = 2


class OrderCreateRequest(BaseModel):
    """Body accepted by `POST /orders`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_name: str = Field(strict=True)
    total_amount: float = Field(gt=0, le=MAX_TOTAL_AMOUNT, strict=True, allow_inf_nan=False)

    @field_validator("customer_name")
    @classmethod
    def customer_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("total_amount")
    @classmethod
    def total_amount_in_cents(cls, value: float) -> float:
        if Decimal(str(value)).as_tuple().exponent < -AMOUNT_DECIMAL_PLACES:
            raise ValueError(f"must have at most {AMOUNT_DECIMAL_PLACES} decimal places")
        return value


class OrderResponse(BaseModel):
    """Full order record as returned to clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    idempotency_key: str
    customer_name: str
    total_amount: float
    status: str
    created_at: datetime
    payment_processed_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.order_id,
            idempotency_key=order.idempotency_key,
            customer_name=order.customer_name,
            total_amount=order.total_amount,
            status=order.status,
            created_at=_as_utc(order.created_at),
            payment_processed_at=_as_utc(order.payment_processed_at),
        )

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _as_utc(value: datetime | None) -> datetime | None:
    # Some drivers (sqlite) hand back naive datetimes for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def describe_errors(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors into one readable line per violation."""

    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"].removeprefix("Value error, ")
        problems.append(f"{field}: {message}")
    return problems
