"""Domain exceptions raised by the ledger, catalog and checkout layers.

HTTP handlers translate these into status codes; nothing below the handlers
knows about HTTP.
"""


class LedgerError(Exception):
    """Base class for ledger protocol failures."""


class LedgerValidationError(LedgerError, ValueError):
    """Missing or malformed identifiers, rejected before any store access."""


class PaymentRegressionError(LedgerError):
    """Attempt to move a successful payment entry to failed."""

    def __init__(self, user_id: str, order_id: str) -> None:
        super().__init__(f"cannot regress a successful payment (user={user_id} order={order_id})")
        self.user_id = user_id
        self.order_id = order_id


class LedgerConflictError(LedgerError):
    """A concurrent writer changed the profile between read and write."""


class LedgerContentionError(LedgerError):
    """Optimistic retries were exhausted; safe for the caller to retry."""


class CourseNotFoundError(LookupError):
    """Referenced course does not exist in the catalog."""


class AlreadyEnrolledError(ValueError):
    """User already holds access to the course being purchased."""


class GatewayError(RuntimeError):
    """Payment gateway rejected or failed an order request."""
