"""Ledger entry state machine enforced by the ledger protocol."""

from enum import Enum

from learnpay.common.errors import PaymentRegressionError

PENDING = "pending"
SUCCESS = "success"
FAILED = "failed"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    PENDING: {SUCCESS, FAILED},
    # A retried payment for the same order may still succeed.
    FAILED: {SUCCESS},
    SUCCESS: set(),
}


class LedgerAction(str, Enum):
    """What `record_outcome` did to the user's sequence."""

    CREATED = "created"
    UPDATED = "updated"
    NOOP = "noop"


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")


def resolve_action(current: str | None, requested: str, user_id: str = "", order_id: str = "") -> LedgerAction:
    """Decide how a requested status applies to the entry currently stored.

    `current` is None when no entry with the order id exists yet.
    """

    if requested not in ALLOWED_TRANSITIONS:
        raise ValueError(f"Unknown ledger status: {requested}")
    if current is None:
        return LedgerAction.CREATED
    if current == SUCCESS and requested == FAILED:
        raise PaymentRegressionError(user_id, order_id)
    if current == requested or requested == PENDING:
        return LedgerAction.NOOP
    validate_transition(current, requested)
    return LedgerAction.UPDATED
