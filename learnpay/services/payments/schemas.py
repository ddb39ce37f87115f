"""API request/response schemas for checkout endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field


class CreateOrderRequest(BaseModel):
    """Payload accepted by `POST /payments/orders`."""

    user_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    type: str = "purchase"


class CreateOrderResponse(BaseModel):
    success: bool = True
    order_id: str
    amount: int
    currency: str
    key: str
    course_title: str
    type: str


class VerifyPaymentRequest(BaseModel):
    """Callback fields relayed by the client after hosted checkout."""

    user_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    payment_id: str | None = None
    signature: str | None = None
    course_id: str | None = None
    course_title: str | None = None
    # Omitted on gateway callbacks; the pending entry keeps the ordered amount.
    amount: Decimal | None = Field(default=None, ge=0)
    method: str = "razorpay"
    type: str = "purchase"


class MarkFailedRequest(BaseModel):
    """Client-reported cancellation or gateway error for one order."""

    user_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    failure_reason: str | None = None
    error_code: str | None = None
    error_description: str | None = None
    course_id: str | None = None
    course_title: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    type: str = "purchase"


class PaymentResultResponse(BaseModel):
    """Outcome of verify/mark-failed in the ledger's tri-state terms."""

    success: bool
    result: str
    created: bool = False
    updated: bool = False
    already_failed: bool = False
    message: str


class CourseUpsertRequest(BaseModel):
    title: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
