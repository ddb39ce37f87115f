"""Shared fixtures: in-memory SQLite stands in for Postgres, MockTransport for HTTP."""

import json
import os

os.environ.setdefault("DATABASE_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test-secret")
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")

from decimal import Decimal

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from learnpay.common.db import Base
from learnpay.services.catalog import models as catalog_models  # noqa: F401
from learnpay.services.catalog.service import CatalogService
from learnpay.services.ledger import models as ledger_models  # noqa: F401
from learnpay.services.ledger.service import LedgerService
from learnpay.services.notification.service import NotificationService
from learnpay.services.payments.gateway import RazorpayClient
from learnpay.services.payments.service import CheckoutService

GATEWAY_SECRET = "test-secret"
PUBLIC_KEY_ID = "rzp_test_key"


class FakeGateway:
    """Answers POST /orders; tests flip `status_code` to simulate outages."""

    def __init__(self) -> None:
        self.status_code = 200
        self.order_id = "order_test_1"
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append({"url": str(request.url), "auth": request.headers.get("authorization"), "body": body})
        if self.status_code >= 400:
            return httpx.Response(
                self.status_code,
                json={"error": {"code": "BAD_REQUEST_ERROR", "description": "gateway is down"}},
            )
        return httpx.Response(
            200,
            json={"id": self.order_id, "amount": body["amount"], "currency": body["currency"], "status": "created"},
        )


class FakeMailer:
    """Collects email API payloads; `status_code` controls the reply."""

    def __init__(self) -> None:
        self.status_code = 201
        self.messages: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"messageId": "msg-1"})


def make_session_factory(engine):
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def ledger(session_factory):
    return LedgerService(session_factory, max_attempts=3, base_delay_seconds=0)


@pytest.fixture
def catalog(session_factory):
    catalog = CatalogService(session_factory)
    catalog.upsert_course("course_py", "Python Foundations", Decimal("500"))
    catalog.upsert_course("course_free", "Intro Webinar", Decimal("0"))
    return catalog


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def notifier(fake_mailer):
    return NotificationService(
        "https://mail.test/v3/smtp/email",
        "mail-key",
        "noreply@learnpay.test",
        "LearnPay",
        "https://learn.test/",
        transport=httpx.MockTransport(fake_mailer),
    )


@pytest.fixture
def checkout(ledger, catalog, fake_gateway, notifier):
    gateway = RazorpayClient(
        "https://gateway.test/v1",
        PUBLIC_KEY_ID,
        GATEWAY_SECRET,
        transport=httpx.MockTransport(fake_gateway),
    )
    return CheckoutService(
        ledger,
        catalog,
        gateway,
        notifier,
        key_secret=GATEWAY_SECRET,
        public_key_id=PUBLIC_KEY_ID,
    )
