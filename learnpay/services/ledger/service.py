"""Ledger update protocol for per-user payment histories.

Every write re-reads the profile and the entry for the order, decides with
the state machine, and commits under the profile's `state_version` guard.
Racing callers (a cancellation callback and a verification request, two
browser tabs) serialize through `run_in_transaction` retries.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, select

from learnpay.common.config import settings
from learnpay.common.errors import LedgerValidationError, PaymentRegressionError
from learnpay.common.logging import ledger_context, logger
from learnpay.common.metrics import ledger_regressions_total, ledger_writes_total
from learnpay.common.state_machine import FAILED, PENDING, SUCCESS, LedgerAction, resolve_action
from learnpay.common.tracing import tag_ledger_span, tracer
from learnpay.common.transactions import bump_version, run_in_transaction
from learnpay.services.ledger.models import LedgerTransaction, UserProfile
from learnpay.services.ledger.schemas import (
    LedgerEntryView,
    LedgerOutcome,
    LedgerWriteResult,
    ProfileUpdate,
    ProfileView,
    StalePendingEntry,
)

DEFAULT_FAILURE_REASON = "Payment cancelled or failed"
DEFAULT_ERROR_CODE = "PAYMENT_FAILED"

SuccessHook = Callable[..., None]


def _require(value: str | None, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise LedgerValidationError(f"{name} is required")
    return value


class LedgerService:
    """Owns user profiles and the transaction history stored under them."""

    def __init__(
        self,
        session_factory,
        service_name: str = "ledger",
        max_attempts: int | None = None,
        base_delay_seconds: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.service_name = service_name
        self.max_attempts = settings.ledger_max_attempts if max_attempts is None else max_attempts
        self.base_delay_seconds = (
            settings.ledger_retry_base_delay_seconds if base_delay_seconds is None else base_delay_seconds
        )

    def record_outcome(
        self,
        user_id: str,
        order_id: str,
        outcome: LedgerOutcome,
        on_success: SuccessHook | None = None,
    ) -> LedgerWriteResult:
        """Apply `outcome` to the user's entry for `order_id`.

        `on_success(db, entry)` runs inside the same transaction whenever this
        call moves the entry into `success`, so access grants commit together
        with the payment record.

        Raises `PaymentRegressionError` when asked to fail a successful entry.
        """

        _require(user_id, "user_id")
        _require(order_id, "order_id")
        with ledger_context(user_id, order_id), tracer.start_as_current_span("ledger.record_outcome"):
            tag_ledger_span(user_id, order_id)
            try:
                result = run_in_transaction(
                    self.session_factory,
                    lambda db: self._apply(db, user_id, order_id, outcome, on_success),
                    max_attempts=self.max_attempts,
                    base_delay_seconds=self.base_delay_seconds,
                    service_name=self.service_name,
                )
            except PaymentRegressionError:
                ledger_regressions_total.labels(service=self.service_name).inc()
                logger.warning("refused to mark a successful payment as failed")
                raise
            ledger_writes_total.labels(
                service=self.service_name,
                action=result.action.value,
                status=result.entry.status,
            ).inc()
            logger.info(
                "ledger write action=%s previous=%s status=%s",
                result.action.value,
                result.previous_status,
                result.entry.status,
            )
            return result

    def _apply(
        self,
        db,
        user_id: str,
        order_id: str,
        outcome: LedgerOutcome,
        on_success: SuccessHook | None,
    ) -> LedgerWriteResult:
        """One attempt of the read-decide-write cycle."""

        now = datetime.now(timezone.utc)
        profile = db.get(UserProfile, user_id)
        if profile is None:
            db.add(UserProfile(user_id=user_id, state_version=1, updated_at=now))
            # Surface a concurrent bootstrap as IntegrityError before touching entries.
            db.flush()
            entry = self._new_entry(user_id, order_id, outcome, sequence=0, now=now)
            db.add(entry)
            db.flush()
            if entry.status == SUCCESS and on_success is not None:
                on_success(db, entry)
            return LedgerWriteResult(action=LedgerAction.CREATED, entry=LedgerEntryView.model_validate(entry))

        current_version = profile.state_version
        existing = db.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.order_id == order_id,
            )
        ).scalar_one_or_none()
        previous_status = existing.status if existing is not None else None
        action = resolve_action(previous_status, outcome.status, user_id, order_id)

        if action == LedgerAction.NOOP:
            return LedgerWriteResult(
                action=action,
                previous_status=previous_status,
                entry=LedgerEntryView.model_validate(existing),
            )

        if action == LedgerAction.CREATED:
            sequence = db.execute(
                select(func.count()).select_from(LedgerTransaction).where(LedgerTransaction.user_id == user_id)
            ).scalar_one()
            entry = self._new_entry(user_id, order_id, outcome, sequence=sequence, now=now)
            db.add(entry)
        else:
            entry = existing
            self._overwrite(entry, outcome, now)

        bump_version(db, UserProfile, UserProfile.user_id, user_id, current_version, updated_at=now)
        db.flush()
        if entry.status == SUCCESS and on_success is not None:
            on_success(db, entry)
        return LedgerWriteResult(
            action=action,
            previous_status=previous_status,
            entry=LedgerEntryView.model_validate(entry),
        )

    @staticmethod
    def _new_entry(
        user_id: str, order_id: str, outcome: LedgerOutcome, sequence: int, now: datetime
    ) -> LedgerTransaction:
        failed = outcome.status == FAILED
        return LedgerTransaction(
            user_id=user_id,
            order_id=order_id,
            sequence=sequence,
            payment_id=outcome.payment_id,
            amount=outcome.amount if outcome.amount is not None else Decimal("0"),
            status=outcome.status,
            failure_reason=(outcome.failure_reason or DEFAULT_FAILURE_REASON) if failed else None,
            error_code=(outcome.error_code or DEFAULT_ERROR_CODE) if failed else None,
            course_id=outcome.course_id,
            course_title=outcome.course_title,
            method=outcome.method,
            type=outcome.type,
            timestamp=now,
            updated_at=now,
        )

    @staticmethod
    def _overwrite(entry: LedgerTransaction, outcome: LedgerOutcome, now: datetime) -> None:
        """Move an existing entry to the outcome's status in place."""

        entry.status = outcome.status
        if outcome.payment_id:
            entry.payment_id = outcome.payment_id
        if outcome.amount is not None:
            entry.amount = outcome.amount
        if outcome.course_id:
            entry.course_id = outcome.course_id
        if outcome.course_title:
            entry.course_title = outcome.course_title
        if outcome.status == FAILED:
            entry.failure_reason = outcome.failure_reason or DEFAULT_FAILURE_REASON
            entry.error_code = outcome.error_code or entry.error_code or DEFAULT_ERROR_CODE
        else:
            entry.method = outcome.method
            entry.failure_reason = None
            entry.error_code = None
        entry.updated_at = now

    def upsert_profile(self, user_id: str, update: ProfileUpdate) -> ProfileView:
        """Create the profile if needed and set the provided contact fields."""

        _require(user_id, "user_id")

        def work(db) -> ProfileView:
            now = datetime.now(timezone.utc)
            profile = db.get(UserProfile, user_id)
            if profile is None:
                profile = UserProfile(
                    user_id=user_id,
                    email=update.email,
                    full_name=update.full_name,
                    state_version=1,
                    updated_at=now,
                )
                db.add(profile)
                db.flush()
                return ProfileView.model_validate(profile)
            values = update.model_dump(exclude_none=True)
            bump_version(db, UserProfile, UserProfile.user_id, user_id, profile.state_version, updated_at=now, **values)
            return ProfileView(
                user_id=user_id,
                email=values.get("email", profile.email),
                full_name=values.get("full_name", profile.full_name),
            )

        return run_in_transaction(
            self.session_factory,
            work,
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
            service_name=self.service_name,
        )

    def get_profile(self, user_id: str) -> ProfileView | None:
        with self.session_factory() as db:
            profile = db.get(UserProfile, user_id)
            return ProfileView.model_validate(profile) if profile is not None else None

    def list_transactions(self, user_id: str, newest_first: bool = False) -> list[LedgerEntryView]:
        """Return the user's entries in append order (or reversed)."""

        _require(user_id, "user_id")
        order = LedgerTransaction.sequence.desc() if newest_first else LedgerTransaction.sequence
        with self.session_factory() as db:
            rows = db.execute(
                select(LedgerTransaction).where(LedgerTransaction.user_id == user_id).order_by(order)
            ).scalars().all()
            return [LedgerEntryView.model_validate(row) for row in rows]

    def stale_pending(self, older_than: timedelta, limit: int = 1000) -> list[StalePendingEntry]:
        """Entries still `pending` whose creation time is before now - `older_than`."""

        if limit < 1:
            raise LedgerValidationError("limit must be at least 1")
        cutoff = datetime.now(timezone.utc) - older_than
        with self.session_factory() as db:
            rows = db.execute(
                select(LedgerTransaction)
                .where(LedgerTransaction.status == PENDING, LedgerTransaction.timestamp < cutoff)
                .order_by(LedgerTransaction.timestamp)
                .limit(limit)
            ).scalars().all()
            return [
                StalePendingEntry(
                    user_id=row.user_id,
                    order_id=row.order_id,
                    amount=row.amount,
                    course_id=row.course_id,
                    timestamp=row.timestamp,
                )
                for row in rows
            ]
