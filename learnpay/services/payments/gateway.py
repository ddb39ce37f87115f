"""Razorpay orders API client."""

import re
import time
from decimal import ROUND_HALF_UP, Decimal

import httpx

from learnpay.common.errors import GatewayError
from learnpay.common.logging import logger

RECEIPT_MAX_LENGTH = 40


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise, rounded half-up."""

    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_receipt(order_type: str, user_id: str, now_ms: int | None = None) -> str:
    """Gateway receipt: `type_user_epochms`, alphanumerics and `_` only, max 40 chars."""

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    raw = f"{order_type}_{user_id}_{now_ms}"
    return re.sub(r"[^a-zA-Z0-9_]", "", raw)[:RECEIPT_MAX_LENGTH]


class RazorpayClient:
    """Creates hosted-checkout orders with basic auth `(key_id, key_secret)`."""

    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout
        self.transport = transport

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> dict:
        """POST /orders and return the gateway's order payload."""

        body = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self.transport,
            ) as client:
                resp = await client.post(f"{self.base_url}/orders", json=body)
        except httpx.HTTPError as exc:
            raise GatewayError(f"gateway unreachable: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("gateway rejected order status=%s", resp.status_code)
            raise GatewayError(_error_description(resp))
        try:
            payload = resp.json()
        except ValueError as exc:
            raise GatewayError("gateway order response is not JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("id"), str):
            raise GatewayError("gateway order response malformed")
        return payload


def _error_description(resp: httpx.Response) -> str:
    """Razorpay puts the reason in `error.description`; fall back to the raw body."""

    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"gateway returned {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    if isinstance(error, str) and error:
        return error
    return resp.text or f"gateway returned {resp.status_code}"
