"""JSON logs on stdout, tagged with the request trace id and the ledger key being written."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from pythonjsonlogger.json import JsonFormatter

from learnpay.common.config import settings

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(user_id)s %(order_id)s %(message)s"


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.user_id = user_id_ctx.get()
        record.order_id = order_id_ctx.get()
        return True


@contextmanager
def ledger_context(user_id: str, order_id: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with the (user, order) being written."""

    user_token = user_id_ctx.set(user_id)
    order_token = order_id_ctx.set(order_id)
    try:
        yield
    finally:
        order_id_ctx.reset(order_token)
        user_id_ctx.reset(user_token)


def configure_logging() -> None:
    """Replace root handlers with a single JSON stdout handler."""

    context_filter = ContextFilter()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter(LOG_FORMAT, rename_fields={"levelname": "level", "name": "logger"}))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)
    # Access logs duplicate the request metrics.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger("learnpay")
