"""Shared FastAPI helpers: API key check and domain error translation."""

from fastapi import HTTPException

from learnpay.common.config import settings
from learnpay.common.errors import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    GatewayError,
    LedgerContentionError,
    LedgerValidationError,
    PaymentRegressionError,
)

# Checked in order; subclasses before their bases.
_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (LedgerValidationError, 400),
    (AlreadyEnrolledError, 400),
    (CourseNotFoundError, 404),
    (GatewayError, 502),
    (LedgerContentionError, 503),
    (PaymentRegressionError, 500),
]

DOMAIN_ERRORS = tuple(error_type for error_type, _ in _STATUS_BY_ERROR)


def enforce_api_key(x_api_key: str | None) -> None:
    """Reject requests that do not provide the configured API key."""

    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


def http_error(exc: Exception) -> HTTPException:
    """Map a domain exception to the HTTP status the caller should see."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
