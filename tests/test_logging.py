"""Correlation fields carried into log records."""

import logging

from orderflow.common.logging import ContextFilter, log_context, order_id_ctx, trace_id_ctx


def make_record() -> logging.LogRecord:
    record = logging.LogRecord("orderflow", logging.INFO, __file__, 1, "msg", None, None)
    ContextFilter().filter(record)
    return record


def test_log_context_binds_fields_for_the_block():
    with log_context(trace_id="trace-1", event_id="event-1", order_id="order-1"):
        record = make_record()

    assert (record.trace_id, record.event_id, record.order_id) == ("trace-1", "event-1", "order-1")
    after = make_record()
    assert (after.trace_id, after.event_id, after.order_id) == ("", "", "")


def test_log_context_rolls_back_values_set_inside():
    with log_context(trace_id="outer"):
        with log_context(trace_id="inner", order_id=None):
            order_id_ctx.set("learned-mid-request")
            assert make_record().order_id == "learned-mid-request"
        assert trace_id_ctx.get() == "outer"
        assert order_id_ctx.get() == ""
    assert trace_id_ctx.get() == ""


def test_log_context_resets_on_error():
    try:
        with log_context(order_id="order-9"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert order_id_ctx.get() == ""
