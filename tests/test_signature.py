"""HMAC callback signature gate and free-enrollment prefix checks."""

import hashlib
import hmac
from decimal import Decimal

from learnpay.services.payments.signature import (
    compute_signature,
    has_free_prefix,
    is_free_enrollment,
    verify_signature,
)

SECRET = "s3cret"


def test_signature_matches_hmac_of_order_and_payment():
    expected = hmac.new(SECRET.encode(), b"order_O|pay_P", hashlib.sha256).hexdigest()

    assert compute_signature(SECRET, "order_O", "pay_P") == expected
    assert verify_signature(SECRET, "order_O", "pay_P", expected)


def test_any_other_signature_is_rejected():
    good = compute_signature(SECRET, "order_O", "pay_P")

    assert not verify_signature(SECRET, "order_O", "pay_P", good.upper())
    assert not verify_signature(SECRET, "order_O", "pay_P", good[:-1])
    assert not verify_signature(SECRET, "order_O", "pay_P", "")
    assert not verify_signature(SECRET, "order_O", "pay_P", None)
    # Valid signature, but for a different (order, payment) pair.
    assert not verify_signature(SECRET, "order_O", "pay_P", compute_signature(SECRET, "order_X", "pay_P"))
    assert not verify_signature("other-secret", "order_O", "pay_P", good)


def test_missing_secret_never_verifies():
    assert not verify_signature("", "order_O", "pay_P", compute_signature("", "order_O", "pay_P"))


def test_free_bypass_requires_prefix_and_zero_amount():
    assert is_free_enrollment("dummy_123", Decimal("0"), "dummy_")
    assert not is_free_enrollment("dummy_123", Decimal("0.01"), "dummy_")
    assert not is_free_enrollment("order_123", Decimal("0"), "dummy_")
    assert not has_free_prefix("dummy_123", "")


def test_missing_amount_counts_as_zero_for_free_bypass():
    assert is_free_enrollment("dummy_123", None, "dummy_")
