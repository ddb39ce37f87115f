"""Email sender payloads and failure handling."""

import asyncio

import httpx

from learnpay.services.notification.service import NotificationService, PurchaseConfirmation


def confirmation(**fields) -> PurchaseConfirmation:
    data = {
        "email": "asha@example.com",
        "user_name": "Asha <3",
        "user_id": "u1",
        "course_id": "course_py",
        "course_title": "Python Foundations",
        "order_id": "order_1",
    }
    data.update(fields)
    return PurchaseConfirmation(**data)


def test_confirmation_payload(notifier, fake_mailer):
    assert asyncio.run(notifier.send_purchase_confirmation(confirmation()))

    [message] = fake_mailer.messages
    assert message["sender"] == {"name": "LearnPay", "email": "noreply@learnpay.test"}
    assert message["subject"] == "You're enrolled: Python Foundations"
    assert "Asha &lt;3" in message["htmlContent"]
    assert "https://learn.test/courses/course_py" in message["htmlContent"]


def test_rejected_send_returns_false(notifier, fake_mailer):
    fake_mailer.status_code = 400

    assert not asyncio.run(notifier.send("asha@example.com", "hi", "<p>hi</p>"))


def test_transport_error_is_swallowed():
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    notifier = NotificationService(
        "https://mail.test/v3/smtp/email",
        "mail-key",
        "noreply@learnpay.test",
        "LearnPay",
        "https://learn.test",
        transport=httpx.MockTransport(unreachable),
    )

    assert not asyncio.run(notifier.send_purchase_confirmation(confirmation(course_id=None)))
