"""Checkout flows: order creation, payment verification, failure reports.

All three write through `LedgerService.record_outcome`; this module decides
which outcome to record and what else rides in the same transaction.
"""

import time

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from learnpay.common.config import settings
from learnpay.common.errors import (
    AlreadyEnrolledError,
    GatewayError,
    LedgerValidationError,
    PaymentRegressionError,
)
from learnpay.common.logging import logger
from learnpay.common.metrics import (
    free_bypass_refused_total,
    gateway_errors_total,
    payment_failure_total,
    payment_success_total,
    signature_failures_total,
)
from learnpay.common.state_machine import FAILED, PENDING, SUCCESS, LedgerAction
from learnpay.services.catalog.models import Course
from learnpay.services.catalog.service import CatalogService, grant_access
from learnpay.services.ledger.schemas import LedgerOutcome, LedgerWriteResult
from learnpay.services.ledger.service import LedgerService
from learnpay.services.notification.service import NotificationService, PurchaseConfirmation
from learnpay.services.payments.gateway import RazorpayClient, build_receipt, to_minor_units
from learnpay.services.payments.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    MarkFailedRequest,
    VerifyPaymentRequest,
)
from learnpay.services.payments.signature import has_free_prefix, is_free_enrollment, verify_signature

INVALID_SIGNATURE_REASON = "invalid signature"
ORDER_CREATION_FAILED_TITLE = "Order Creation Failed"


class VerificationOutcome(BaseModel):
    """Result of one verify call; `confirmation` is set when an email is due."""

    verified: bool
    message: str
    write: LedgerWriteResult | None = None
    confirmation: PurchaseConfirmation | None = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class CheckoutService:
    """Gateway-facing purchase flows for courses."""

    def __init__(
        self,
        ledger: LedgerService,
        catalog: CatalogService,
        gateway: RazorpayClient,
        notifier: NotificationService,
        key_secret: str,
        public_key_id: str,
        free_order_prefix: str = "dummy_",
        default_currency: str = "INR",
        service_name: str = "payments",
    ) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.gateway = gateway
        self.notifier = notifier
        self.key_secret = key_secret
        self.public_key_id = public_key_id
        self.free_order_prefix = free_order_prefix
        self.default_currency = default_currency
        self.service_name = service_name

    async def create_order(self, req: CreateOrderRequest) -> CreateOrderResponse:
        """Open a gateway order for the course's list price and record it as `pending`.

        Catalog reads and ledger writes block on the database and may sleep in
        the retry backoff, so they run in the threadpool.
        """

        course = await run_in_threadpool(self.catalog.get_course, req.course_id)
        if await run_in_threadpool(self.catalog.is_enrolled, course.course_id, req.user_id):
            logger.warning("repeat purchase attempt course_id=%s user_id=%s", course.course_id, req.user_id)
            raise AlreadyEnrolledError("You are already enrolled in this course")
        if req.amount != course.price:
            logger.warning(
                "order amount does not match course price amount=%s price=%s course_id=%s",
                req.amount,
                course.price,
                course.course_id,
            )
            raise LedgerValidationError(f"Amount must equal the course price {course.price}")

        currency = (req.currency or self.default_currency).upper()
        try:
            order = await self.gateway.create_order(
                course.price,
                currency,
                build_receipt(req.type, req.user_id),
                notes={"course_id": course.course_id, "user_id": req.user_id, "type": req.type},
            )
        except GatewayError as exc:
            gateway_errors_total.labels(service=self.service_name).inc()
            logger.error("order creation failed user_id=%s course_id=%s error=%s", req.user_id, req.course_id, exc)
            await run_in_threadpool(self._record_order_failure, req, str(exc))
            raise

        await run_in_threadpool(
            self.ledger.record_outcome,
            req.user_id,
            order["id"],
            LedgerOutcome(
                status=PENDING,
                amount=course.price,
                course_id=course.course_id,
                course_title=course.title,
                type=req.type,
            ),
        )
        return CreateOrderResponse(
            order_id=order["id"],
            amount=int(order.get("amount", to_minor_units(course.price))),
            currency=order.get("currency", currency),
            key=self.public_key_id,
            course_title=course.title,
            type=req.type,
        )

    def _record_order_failure(self, req: CreateOrderRequest, reason: str) -> None:
        try:
            self.ledger.record_outcome(
                req.user_id,
                f"failed_{_now_ms()}",
                LedgerOutcome(
                    status=FAILED,
                    amount=req.amount,
                    course_id=req.course_id,
                    course_title=ORDER_CREATION_FAILED_TITLE,
                    failure_reason=reason or "Order creation failed",
                    error_code="ORDER_CREATION_FAILED",
                    type=req.type,
                ),
            )
        except Exception as exc:
            logger.exception("could not record failed order: %s", exc)

    def verify_payment(self, req: VerifyPaymentRequest) -> VerificationOutcome:
        """Gate a client-relayed callback on its signature, then record it."""

        if has_free_prefix(req.order_id, self.free_order_prefix):
            course = self.catalog.get_course(req.course_id) if req.course_id else None
            course_is_free = course is None or course.price == 0
            if is_free_enrollment(req.order_id, req.amount, self.free_order_prefix) and course_is_free:
                return self._complete_free_enrollment(req, course)
            free_bypass_refused_total.labels(service=self.service_name).inc()
            logger.warning(
                "free-enrollment bypass refused amount=%s course_id=%s; verifying as gateway payment",
                req.amount,
                req.course_id,
            )

        if not req.payment_id or not req.signature:
            raise LedgerValidationError("Missing payment details")

        if not verify_signature(self.key_secret, req.order_id, req.payment_id, req.signature):
            return self._reject_signature(req)

        if not req.course_id:
            raise LedgerValidationError("Missing course_id")
        course = self.catalog.get_course(req.course_id)
        write = self.ledger.record_outcome(
            req.user_id,
            req.order_id,
            LedgerOutcome(
                status=SUCCESS,
                amount=req.amount,
                payment_id=req.payment_id,
                course_id=course.course_id,
                course_title=req.course_title or course.title,
                method=req.method,
                type=req.type,
            ),
            on_success=self._grant(course.course_id, req.user_id, req.order_id),
        )
        if write.action != LedgerAction.NOOP:
            payment_success_total.labels(service=self.service_name, method=req.method).inc()
        return VerificationOutcome(
            verified=True,
            message="Payment verified successfully",
            write=write,
            confirmation=self._confirmation(req.user_id, write),
        )

    def _complete_free_enrollment(self, req: VerifyPaymentRequest, course: Course | None) -> VerificationOutcome:
        logger.info("free enrollment order_id=%s", req.order_id)
        write = self.ledger.record_outcome(
            req.user_id,
            req.order_id,
            LedgerOutcome(
                status=SUCCESS,
                amount=req.amount,
                payment_id=req.payment_id or f"{self.free_order_prefix}pay_{_now_ms()}",
                course_id=course.course_id if course else None,
                course_title=req.course_title or (course.title if course else None),
                method="free",
                type=req.type,
            ),
            on_success=self._grant(course.course_id, req.user_id, req.order_id) if course else None,
        )
        if write.action != LedgerAction.NOOP:
            payment_success_total.labels(service=self.service_name, method="free").inc()
        return VerificationOutcome(
            verified=True,
            message="Free enrollment completed",
            write=write,
            confirmation=self._confirmation(req.user_id, write),
        )

    def _reject_signature(self, req: VerifyPaymentRequest) -> VerificationOutcome:
        signature_failures_total.labels(service=self.service_name).inc()
        payment_failure_total.labels(service=self.service_name, reason="invalid_signature").inc()
        logger.error("SECURITY invalid payment signature payment_id=%s", req.payment_id)
        write = None
        try:
            write = self.ledger.record_outcome(
                req.user_id,
                req.order_id,
                LedgerOutcome(
                    status=FAILED,
                    amount=req.amount,
                    payment_id=req.payment_id,
                    course_id=req.course_id,
                    course_title=req.course_title,
                    failure_reason=INVALID_SIGNATURE_REASON,
                    error_code="INVALID_SIGNATURE",
                    method=req.method,
                    type=req.type,
                ),
            )
        except PaymentRegressionError:
            logger.warning("invalid signature presented for an order that already succeeded")
        return VerificationOutcome(verified=False, message=INVALID_SIGNATURE_REASON, write=write)

    def mark_failed(self, req: MarkFailedRequest) -> LedgerWriteResult:
        """Record a client-reported cancellation; idempotent for failed entries."""

        write = self.ledger.record_outcome(
            req.user_id,
            req.order_id,
            LedgerOutcome(
                status=FAILED,
                amount=req.amount,
                course_id=req.course_id,
                course_title=req.course_title,
                failure_reason=req.failure_reason or req.error_description,
                error_code=req.error_code,
                type=req.type,
            ),
        )
        if write.action != LedgerAction.NOOP:
            payment_failure_total.labels(service=self.service_name, reason="reported").inc()
        return write

    @staticmethod
    def _grant(course_id: str, user_id: str, order_id: str):
        def hook(db, entry) -> None:
            grant_access(db, course_id, user_id, order_id)

        return hook

    def _confirmation(self, user_id: str, write: LedgerWriteResult) -> PurchaseConfirmation | None:
        """Email is due only when this call moved the entry into success."""

        if write.action == LedgerAction.NOOP or write.entry.status != SUCCESS:
            return None
        profile = self.ledger.get_profile(user_id)
        if profile is None or not profile.email:
            return None
        return PurchaseConfirmation(
            email=profile.email,
            user_name=profile.full_name or "",
            user_id=user_id,
            course_id=write.entry.course_id,
            course_title=write.entry.course_title or "your course",
            order_id=write.entry.order_id,
        )


def build_checkout_service(session_factory) -> CheckoutService:
    """Wire the checkout flows from process settings."""

    return CheckoutService(
        ledger=LedgerService(session_factory, service_name=settings.service_name),
        catalog=CatalogService(session_factory),
        gateway=RazorpayClient(
            settings.razorpay_api_url,
            settings.razorpay_key_id,
            settings.razorpay_key_secret,
            timeout=settings.gateway_timeout_seconds,
        ),
        notifier=NotificationService(
            settings.email_api_url,
            settings.email_api_key,
            settings.sender_email,
            settings.sender_name,
            settings.site_url,
            timeout=settings.email_timeout_seconds,
            service_name=settings.service_name,
        ),
        key_secret=settings.razorpay_key_secret,
        public_key_id=settings.razorpay_key_id,
        free_order_prefix=settings.free_order_prefix,
        default_currency=settings.default_currency,
        service_name=settings.service_name,
    )
