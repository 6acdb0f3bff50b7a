"""Structured JSON logging with request/event context fields."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from pythonjsonlogger.json import JsonFormatter

from orderflow.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
event_id_ctx: ContextVar[str] = ContextVar("event_id", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")

_CONTEXT_VARS: dict[str, ContextVar[str]] = {
    "trace_id": trace_id_ctx,
    "event_id": event_id_ctx,
    "order_id": order_id_ctx,
}


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.event_id = event_id_ctx.get()
        record.order_id = order_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per service process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(event_id)s %(order_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)



@contextmanager
def log_context(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for the duration of one request or queue item.

    Values set inside the block (for example an order id learned mid-request)
    are rolled back on exit along with the bound ones.
    """

    tokens = [(_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(value or "")) for name, value in fields.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


logger = logging.getLogger("orderflow")
