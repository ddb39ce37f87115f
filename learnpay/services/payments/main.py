"""Public checkout API: create order, verify payment, report failure.

Every ledger write goes through the optimistic ledger protocol; confirmation
emails are scheduled as background tasks only after that write commits.
"""

from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException

from learnpay.common.config import settings
from learnpay.common.db import SessionLocal
from learnpay.common.http import DOMAIN_ERRORS, enforce_api_key, http_error
from learnpay.common.logging import configure_logging, logger, trace_id_ctx
from learnpay.common.metrics import metrics_response, payment_latency_seconds, payment_requests_total
from learnpay.common.startup import log_startup_config
from learnpay.common.state_machine import FAILED, LedgerAction
from learnpay.common.tracing import instrument_app, setup_tracing
from learnpay.services.payments.schemas import (
    CourseUpsertRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    MarkFailedRequest,
    PaymentResultResponse,
    VerifyPaymentRequest,
)
from learnpay.services.payments.service import build_checkout_service

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    [
        "database_dsn",
        "razorpay_api_url",
        "razorpay_key_id",
        "razorpay_key_secret",
        "email_api_url",
        "email_api_key",
        "free_order_prefix",
    ],
)
service = build_checkout_service(SessionLocal)

app = FastAPI(title="LearnPay Payments")
instrument_app(app)


def _bind_trace(x_trace_id: str | None) -> None:
    trace_id_ctx.set(x_trace_id or str(uuid4()))


@app.post("/payments/orders", response_model=CreateOrderResponse)
async def create_order(
    req: CreateOrderRequest,
    x_api_key: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Create a gateway order and record it as `pending`."""

    enforce_api_key(x_api_key)
    _bind_trace(x_trace_id)
    payment_requests_total.labels(service=settings.service_name, operation="create_order").inc()
    with payment_latency_seconds.labels(service=settings.service_name, operation="create_order").time():
        try:
            return await service.create_order(req)
        except DOMAIN_ERRORS as exc:
            raise http_error(exc) from exc


@app.post("/payments/verify", response_model=PaymentResultResponse)
def verify_payment(
    req: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    x_api_key: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Verify the callback signature and record success (or the security failure)."""

    enforce_api_key(x_api_key)
    _bind_trace(x_trace_id)
    payment_requests_total.labels(service=settings.service_name, operation="verify").inc()
    with payment_latency_seconds.labels(service=settings.service_name, operation="verify").time():
        try:
            outcome = service.verify_payment(req)
        except DOMAIN_ERRORS as exc:
            raise http_error(exc) from exc

    if not outcome.verified:
        raise HTTPException(status_code=400, detail=outcome.message)
    if outcome.confirmation is not None:
        background_tasks.add_task(service.notifier.send_purchase_confirmation, outcome.confirmation)
    action = outcome.write.action
    return PaymentResultResponse(
        success=True,
        result=action.value,
        created=action == LedgerAction.CREATED,
        updated=action == LedgerAction.UPDATED,
        message=outcome.message,
    )


@app.post("/payments/mark-failed", response_model=PaymentResultResponse)
def mark_failed(
    req: MarkFailedRequest,
    x_api_key: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Record a cancelled or errored checkout. Repeats are safe."""

    enforce_api_key(x_api_key)
    _bind_trace(x_trace_id)
    payment_requests_total.labels(service=settings.service_name, operation="mark_failed").inc()
    try:
        write = service.mark_failed(req)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc

    if write.action == LedgerAction.NOOP:
        logger.info("transaction already marked as failed")
        return PaymentResultResponse(
            success=True,
            result=write.action.value,
            already_failed=write.entry.status == FAILED,
            message="Transaction was already marked as failed",
        )
    created = write.action == LedgerAction.CREATED
    return PaymentResultResponse(
        success=True,
        result=write.action.value,
        created=created,
        updated=not created,
        message="Failure transaction created" if created else "Transaction marked as failed",
    )


@app.put("/internal/courses/{course_id}")
def upsert_course(course_id: str, req: CourseUpsertRequest, x_api_key: str | None = Header(default=None)):
    """Seed or reprice a course."""

    enforce_api_key(x_api_key)
    course = service.catalog.upsert_course(course_id, req.title, req.price)
    return {"course_id": course.course_id, "title": course.title, "price": str(course.price)}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
