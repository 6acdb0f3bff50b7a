"""Order store schema.

One table shared by intake (inserts) and settlement (status updates). The
idempotency index is not unique; see `OrderStore.insert_new`.
"""

from datetime import datetime

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.common.db import Base


class Order(Base):
    """One customer order and its settlement status."""

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String, primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String, index=True)
    customer_name: Mapped[str] = mapped_column(String)
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))
    status: Mapped[str] = mapped_column(String, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    payment_processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
