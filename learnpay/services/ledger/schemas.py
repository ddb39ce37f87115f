"""Request/response schemas for the ledger protocol and its endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from learnpay.common.state_machine import LedgerAction


class LedgerOutcome(BaseModel):
    """Desired resulting state for one order, plus context fields."""

    status: Literal["pending", "success", "failed"]
    amount: Decimal | None = Field(default=None, ge=0)
    payment_id: str | None = None
    failure_reason: str | None = None
    error_code: str | None = None
    course_id: str | None = None
    course_title: str | None = None
    method: str = "razorpay"
    type: str = "purchase"


class LedgerEntryView(BaseModel):
    """Serialized ledger entry as shown in transaction history."""

    model_config = ConfigDict(from_attributes=True)

    order_id: str
    payment_id: str | None = None
    amount: Decimal
    status: str
    failure_reason: str | None = None
    error_code: str | None = None
    course_id: str | None = None
    course_title: str | None = None
    method: str
    type: str
    timestamp: datetime
    updated_at: datetime | None = None


class LedgerWriteResult(BaseModel):
    """Tri-state result of `record_outcome` and the entry as it now stands."""

    action: LedgerAction
    previous_status: str | None = None
    entry: LedgerEntryView

    @property
    def already_terminal(self) -> bool:
        return self.action == LedgerAction.NOOP


class ProfileUpdate(BaseModel):
    """Contact details used for confirmation emails."""

    email: str | None = None
    full_name: str | None = None


class ProfileView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str | None = None
    full_name: str | None = None


class StalePendingEntry(BaseModel):
    user_id: str
    order_id: str
    amount: Decimal
    course_id: str | None = None
    timestamp: datetime
