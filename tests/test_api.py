"""HTTP surface: auth, status mapping, background confirmation email."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from learnpay.services.ledger import main as ledger_main
from learnpay.services.ledger.schemas import LedgerOutcome, ProfileUpdate
from learnpay.services.payments import main as payments_main
from learnpay.services.payments.signature import compute_signature

from conftest import GATEWAY_SECRET

HEADERS = {"x-api-key": "test-api-key"}


@pytest.fixture
def payments_client(monkeypatch, checkout):
    monkeypatch.setattr(payments_main, "service", checkout)
    return TestClient(payments_main.app)


@pytest.fixture
def ledger_client(monkeypatch, ledger):
    monkeypatch.setattr(ledger_main, "service", ledger)
    return TestClient(ledger_main.app)


def test_missing_api_key_is_rejected(payments_client, ledger_client):
    assert payments_client.post("/payments/mark-failed", json={"user_id": "u1", "order_id": "o1"}).status_code == 401
    assert ledger_client.get("/users/u1/transactions", headers={"x-api-key": "wrong"}).status_code == 401
    assert payments_client.get("/health").json() == {"ok": True}


def test_verify_sends_confirmation_after_commit(payments_client, checkout, fake_mailer):
    checkout.ledger.upsert_profile("u1", ProfileUpdate(email="asha@example.com", full_name="Asha"))
    body = {
        "user_id": "u1",
        "order_id": "order_1",
        "payment_id": "pay_1",
        "signature": compute_signature(GATEWAY_SECRET, "order_1", "pay_1"),
        "course_id": "course_py",
        "amount": "500",
    }

    resp = payments_client.post("/payments/verify", json=body, headers=HEADERS)

    assert resp.status_code == 200
    assert resp.json()["result"] == "created"
    assert resp.json()["created"] is True
    [message] = fake_mailer.messages
    assert message["to"] == [{"email": "asha@example.com"}]
    assert "Python Foundations" in message["subject"]

    again = payments_client.post("/payments/verify", json=body, headers=HEADERS)
    assert again.json()["result"] == "noop"
    assert len(fake_mailer.messages) == 1


def test_verify_with_bad_signature_is_400(payments_client, checkout, fake_mailer):
    resp = payments_client.post(
        "/payments/verify",
        json={"user_id": "u1", "order_id": "order_1", "payment_id": "pay_1", "signature": "bad", "course_id": "course_py"},
        headers=HEADERS,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "invalid signature"
    assert fake_mailer.messages == []
    assert checkout.ledger.list_transactions("u1")[0].status == "failed"


def test_mark_failed_reports_created_then_already_failed(payments_client):
    body = {"user_id": "u2", "order_id": "order_2", "failure_reason": "cancelled"}

    first = payments_client.post("/payments/mark-failed", json=body, headers=HEADERS).json()
    second = payments_client.post("/payments/mark-failed", json=body, headers=HEADERS).json()

    assert first["created"] is True
    assert first["message"] == "Failure transaction created"
    assert second["already_failed"] is True
    assert second["result"] == "noop"


def test_gateway_outage_maps_to_502(payments_client, fake_gateway):
    fake_gateway.status_code = 500

    resp = payments_client.post(
        "/payments/orders",
        json={"user_id": "u1", "course_id": "course_py", "amount": "500"},
        headers=HEADERS,
    )

    assert resp.status_code == 502


def test_unknown_course_maps_to_404(payments_client):
    resp = payments_client.post(
        "/payments/orders",
        json={"user_id": "u1", "course_id": "missing", "amount": "10"},
        headers=HEADERS,
    )

    assert resp.status_code == 404


def test_regression_through_admin_endpoint_is_500(ledger_client, ledger):
    ledger.record_outcome("u1", "ord_1", LedgerOutcome(status="success", amount=Decimal("5"), payment_id="p"))

    resp = ledger_client.post("/internal/ledger/u1/outcomes/ord_1", json={"status": "failed"}, headers=HEADERS)

    assert resp.status_code == 500
    history = ledger_client.get("/users/u1/transactions", headers=HEADERS).json()
    assert history["count"] == 1
    assert history["transactions"][0]["status"] == "success"


def test_profile_and_pending_report(ledger_client, ledger):
    ledger.record_outcome("u3", "ord_3", LedgerOutcome(status="pending", amount=Decimal("10")))

    assert ledger_client.get("/users/nobody", headers=HEADERS).status_code == 404
    put = ledger_client.put("/users/u3", json={"email": "r@example.com"}, headers=HEADERS)
    assert put.json()["email"] == "r@example.com"

    report = ledger_client.get("/reconciliation/pending?older_than_minutes=-1", headers=HEADERS).json()
    assert report["pending_count"] == 1
    assert report["pending"][0]["order_id"] == "ord_3"


def test_bad_ledger_queries_are_400(ledger_client):
    assert ledger_client.get("/users/%20/transactions", headers=HEADERS).status_code == 400
    assert ledger_client.get("/reconciliation/pending?limit=0", headers=HEADERS).status_code == 400


def test_order_amount_below_price_is_400(payments_client, fake_gateway):
    resp = payments_client.post(
        "/payments/orders",
        json={"user_id": "u1", "course_id": "course_py", "amount": "1"},
        headers=HEADERS,
    )

    assert resp.status_code == 400
    assert fake_gateway.requests == []
