import logging

from learnpay.common.logging import ContextFilter, ledger_context, order_id_ctx, trace_id_ctx, user_id_ctx


def test_ledger_context_tags_records_and_restores():
    trace_id_ctx.set("trace-1")
    record = logging.LogRecord("learnpay", logging.INFO, __file__, 1, "write", None, None)

    with ledger_context("u1", "ord_1"):
        ContextFilter().filter(record)
        with ledger_context("u2", "ord_2"):
            assert user_id_ctx.get() == "u2"
        assert order_id_ctx.get() == "ord_1"

    assert (record.trace_id, record.user_id, record.order_id) == ("trace-1", "u1", "ord_1")
    assert user_id_ctx.get() == ""
    assert order_id_ctx.get() == ""
