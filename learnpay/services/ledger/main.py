"""Ledger API: transaction history, profiles, admin outcomes, pending report."""

from datetime import timedelta
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException

from learnpay.common.config import settings
from learnpay.common.db import SessionLocal
from learnpay.common.http import DOMAIN_ERRORS, enforce_api_key, http_error
from learnpay.common.logging import configure_logging, trace_id_ctx
from learnpay.common.metrics import metrics_response
from learnpay.common.startup import log_startup_config
from learnpay.common.tracing import instrument_app, setup_tracing
from learnpay.services.ledger.schemas import LedgerOutcome, ProfileUpdate
from learnpay.services.ledger.service import LedgerService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings, ["database_dsn", "ledger_max_attempts", "ledger_retry_base_delay_seconds"])
service = LedgerService(SessionLocal, service_name=settings.service_name)

app = FastAPI(title="LearnPay Ledger Service")
instrument_app(app)


@app.get("/users/{user_id}/transactions")
def list_transactions(user_id: str, newest_first: bool = False, x_api_key: str | None = Header(default=None)):
    """Return one user's transaction history."""

    enforce_api_key(x_api_key)
    try:
        entries = service.list_transactions(user_id, newest_first=newest_first)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc
    return {"user_id": user_id, "count": len(entries), "transactions": [e.model_dump(mode="json") for e in entries]}


@app.put("/users/{user_id}")
def upsert_profile(user_id: str, req: ProfileUpdate, x_api_key: str | None = Header(default=None)):
    """Set contact details used for confirmation emails."""

    enforce_api_key(x_api_key)
    try:
        return service.upsert_profile(user_id, req).model_dump()
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc


@app.get("/users/{user_id}")
def get_profile(user_id: str, x_api_key: str | None = Header(default=None)):
    enforce_api_key(x_api_key)
    profile = service.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="user not found")
    return profile.model_dump()


@app.post("/internal/ledger/{user_id}/outcomes/{order_id}")
def record_outcome(
    user_id: str,
    order_id: str,
    outcome: LedgerOutcome,
    x_api_key: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
):
    """Admin action: apply one outcome through the ledger protocol."""

    enforce_api_key(x_api_key)
    trace_id_ctx.set(x_trace_id or str(uuid4()))
    try:
        result = service.record_outcome(user_id, order_id, outcome)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc
    return result.model_dump(mode="json")


@app.get("/reconciliation/pending")
def pending_report(older_than_minutes: int = 60, limit: int = 1000, x_api_key: str | None = Header(default=None)):
    """List entries still `pending` past the cutoff. Report only; nothing is expired."""

    enforce_api_key(x_api_key)
    try:
        entries = service.stale_pending(timedelta(minutes=older_than_minutes), limit=limit)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc
    return {
        "older_than_minutes": older_than_minutes,
        "pending_count": len(entries),
        "pending": [e.model_dump(mode="json") for e in entries],
    }


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
