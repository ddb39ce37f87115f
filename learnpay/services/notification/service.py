"""Transactional email sender for purchase confirmations.

Sending is fire-and-forget: callers schedule it after the ledger commit and
nothing here raises back into them.
"""

from html import escape

import httpx
from pydantic import BaseModel

from learnpay.common.logging import logger
from learnpay.common.metrics import email_sent_total


class PurchaseConfirmation(BaseModel):
    """Who to tell about which completed purchase."""

    email: str
    user_name: str
    user_id: str
    course_id: str | None
    course_title: str
    order_id: str


class NotificationService:
    """Posts emails to a Brevo-style JSON email API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender_email: str,
        sender_name: str,
        site_url: str,
        timeout: float = 10.0,
        service_name: str = "notification",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.site_url = site_url.rstrip("/")
        self.timeout = timeout
        self.service_name = service_name
        self.transport = transport

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email; log and count failures instead of raising."""

        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    self.api_url,
                    headers={"api-key": self.api_key},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            email_sent_total.labels(service=self.service_name, outcome="error").inc()
            logger.error("email send failed to=%s error=%s", to, exc)
            return False

        if resp.status_code not in (200, 201, 202):
            email_sent_total.labels(service=self.service_name, outcome="rejected").inc()
            logger.error("email provider rejected message status=%s body=%s", resp.status_code, resp.text)
            return False
        email_sent_total.labels(service=self.service_name, outcome="sent").inc()
        logger.info("email sent to=%s subject=%s", to, subject)
        return True

    async def send_purchase_confirmation(self, confirmation: PurchaseConfirmation) -> bool:
        subject = f"You're enrolled: {confirmation.course_title}"
        greeting = escape(confirmation.user_name or "there")
        title = escape(confirmation.course_title)
        link = ""
        if confirmation.course_id:
            link = f'<p><a href="{self.site_url}/courses/{escape(confirmation.course_id)}">Open your course</a></p>'
        html = (
            f"<p>Hi {greeting},</p>"
            f"<p>Your payment for <b>{title}</b> went through. Order reference: "
            f"{escape(confirmation.order_id)}.</p>"
            f"{link}"
        )
        return await self.send(confirmation.email, subject, html)
