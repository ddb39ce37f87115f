"""Gateway callback signature checks and the free-enrollment gate."""

import hashlib
import hmac
from decimal import Decimal


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of `order_id|payment_id` under the shared secret."""

    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, order_id: str, payment_id: str, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def has_free_prefix(order_id: str, prefix: str) -> bool:
    return bool(prefix) and order_id.startswith(prefix)


def is_free_enrollment(order_id: str, amount: Decimal | None, prefix: str) -> bool:
    """Only zero-amount orders carrying the free prefix may skip verification.

    A callback without an amount counts as zero.
    """

    return has_free_prefix(order_id, prefix) and (amount or Decimal("0")) == 0
