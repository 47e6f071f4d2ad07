"""Keeps bookings, payments and the transaction ledger in step with Stripe.

Three entry points, each one unit of work that commits on success and rolls
back on failure:

- ``ensure_intent``: create the booking's payment intent, or push a changed
  total to the existing one.
- ``confirm_intent``: confirm an intent synchronously and record the outcome.
- ``apply_success_notification``: record a ``payment_intent.succeeded`` event
  delivered by webhook (or found by the background sync).

Confirm and webhook can both observe the same success; the transaction
ledger's unique index on ``payment_intent_id`` makes the second one a no-op.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from paysync.core.config import Settings
from paysync.enums.booking_status import BookingStatus
from paysync.enums.payment_status import PaymentStatus
from paysync.enums.transaction_status import TransactionStatus
from paysync.models.booking import Booking
from paysync.models.payment import Payment
from paysync.models.transaction import Transaction
from paysync.repositories.booking import BookingRepository
from paysync.repositories.payment import PaymentRepository
from paysync.repositories.transaction import TransactionRepository
from paysync.services.audit_service import log_audit
from paysync.services.stripe_gateway import GatewayError, StripeGateway, SUCCEEDED

logger = logging.getLogger(__name__)

ACTOR = "reconciler"


class BookingNotFound(LookupError):
    def __init__(self, booking_id):
        super().__init__(f"booking {booking_id} not found")
        self.booking_id = booking_id


def to_minor_units(amount: Decimal) -> int:
    """120.00 -> 12000. Half-up rounding for prices stored with more precision."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _has_intent(b: Booking) -> bool:
    return bool(b.payment_intent_id)


class PaymentReconciler:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        gateway: StripeGateway | None,
        bookings: BookingRepository | None = None,
        payments: PaymentRepository | None = None,
        transactions: TransactionRepository | None = None,
    ):
        self.db = db
        self.settings = settings
        self.gateway = gateway
        self.bookings = bookings or BookingRepository(db)
        self.payments = payments or PaymentRepository(db)
        self.transactions = transactions or TransactionRepository(db)

    @property
    def gateway_name(self) -> str:
        return self.settings.PAYMENT_GATEWAY_NAME

    # ensure_intent

    def ensure_intent(self, booking_id: int) -> Booking:
        b = self.bookings.get_for_update(booking_id)
        if not b:
            self.db.rollback()
            raise BookingNotFound(booking_id)

        if self.gateway is None:
            logger.warning("Stripe secret key not set; payment intent not created for booking %s", b.id)
            log_audit(self.db, ACTOR, "payment_intent_skipped", "booking", b.id, {"reason": "gateway_not_configured"})
            self.db.commit()
            return b

        if b.payment_status == PaymentStatus.PAID.value:
            # Stripe rejects amount changes on a succeeded intent; the booking is settled.
            logger.info("Booking %s already paid; leaving intent %s untouched", b.id, b.payment_intent_id)
            self.db.commit()
            return b

        amount = to_minor_units(b.total_price)
        created = None
        try:
            if not _has_intent(b):
                created = self._create_intent(b, amount)
            elif b.payment_status == PaymentStatus.FAILED.value and self.settings.PAYMENT_RETRY_AFTER_FAILURE:
                created = self._create_intent(b, amount, replacing=b.payment_intent_id)
            else:
                intent = self.gateway.update_intent(b.payment_intent_id, amount=amount)
                logger.info("Updated payment intent %s for booking %s to %s", intent.id, b.id, amount)
                log_audit(self.db, ACTOR, "payment_intent_updated", "booking", b.id,
                          {"intent": intent.id, "amount": amount})
            self.db.commit()
        except Exception:
            self.db.rollback()
            if created:
                logger.warning("Booking %s not saved; cancelling intent %s", b.id, created)
                self._cancel_orphan(created)
            raise
        self.db.refresh(b)
        return b

    def _create_intent(self, b: Booking, amount: int, replacing: str | None = None) -> str | None:
        """Create an intent and attach it to the booking; returns its id, or None if another writer won."""
        intent = self.gateway.create_intent(
            amount=amount,
            currency=self.settings.PAYMENT_CURRENCY,
            method_types=self.settings.payment_method_types,
        )
        try:
            claimed = self._attach_intent(b, intent, amount, replacing)
        except Exception:
            logger.warning("Could not record intent %s for booking %s; cancelling it", intent.id, b.id)
            self._cancel_orphan(intent.id)
            raise
        return intent.id if claimed else None

    def _attach_intent(self, b: Booking, intent, amount: int, replacing: str | None) -> bool:
        claimed = self.bookings.claim_payment_intent(
            b.id, intent.id, intent.client_secret, expected_intent_id=replacing,
        )
        if not claimed:
            # Another request attached an intent first; ours is an orphan at Stripe.
            logger.warning("Booking %s already has an intent; cancelling orphan %s", b.id, intent.id)
            self._cancel_orphan(intent.id)
            return False

        payment = self.payments.find_by_booking_id(b.id)
        if payment is None:
            self.payments.add(Payment(
                booking_id=b.id,
                user_id=b.user_id,
                amount=b.total_price,
                status=PaymentStatus.PENDING.value,
                payment_method=self.gateway_name,
                created_at=datetime.now(timezone.utc),
            ))
        else:
            # Retry after failure reuses the booking's single payment row.
            payment.amount = b.total_price
            payment.status = PaymentStatus.PENDING.value
            self.payments.update(payment)

        logger.info("Created payment intent %s for booking %s (%s %s)",
                    intent.id, b.id, amount, self.settings.PAYMENT_CURRENCY)
        log_audit(self.db, ACTOR, "payment_intent_created", "booking", b.id,
                  {"intent": intent.id, "amount": amount, "replaced": replacing})
        return True

    def _cancel_orphan(self, intent_id: str) -> None:
        try:
            self.gateway.cancel_intent(intent_id)
        except GatewayError as e:
            logger.error("Could not cancel orphan intent %s: %s", intent_id, e)

    # confirm_intent

    def confirm_intent(self, intent_id: str) -> bool:
        if self.gateway is None:
            logger.warning("Stripe secret key not set; cannot confirm intent %s", intent_id)
            return False
        try:
            existing = self.gateway.get_intent(intent_id)
            if existing.status == SUCCEEDED:
                logger.info("Payment intent %s already succeeded; skipping confirm", intent_id)
                b = self.bookings.find_by_payment_intent_id(intent_id)
                if b:
                    b.status = BookingStatus.PAID.value
                    b.payment_status = PaymentStatus.PAID.value
                    self.bookings.update(b)
                self.db.commit()
                return True

            intent = self.gateway.confirm_intent(intent_id, payment_method=self.settings.PAYMENT_CONFIRM_METHOD)
            is_paid = intent.status == SUCCEEDED

            b = self.bookings.find_by_payment_intent_id(intent_id)
            payment = self.payments.find_by_booking_id(b.id if b else None)
            self._settle(b, payment, is_paid)

            if is_paid and b:
                self.transactions.add_once(Transaction(
                    payment_intent_id=intent_id,
                    booking_id=b.id,
                    payment_id=payment.id if payment else None,
                    amount=payment.amount if payment else b.total_price,
                    payment_method=payment.payment_method if payment else self.gateway_name,
                    status=TransactionStatus.COMPLETED.value,
                    transaction_date=datetime.now(timezone.utc),
                ))
            elif is_paid:
                logger.warning("Payment intent %s succeeded but no booking references it", intent_id)

            log_audit(self.db, ACTOR, "payment_paid" if is_paid else "payment_failed", "payment_intent", intent_id,
                      {"status": intent.status, "booking": b.id if b else None})
            self.db.commit()
            return is_paid
        except GatewayError as e:
            self.db.rollback()
            logger.warning("gateway_error confirming %s (retryable=%s): %s", intent_id, e.retryable, e)
            return False
        except Exception:
            self.db.rollback()
            logger.exception("internal_error confirming payment intent %s", intent_id)
            return False

    def _settle(self, b: Booking | None, payment: Payment | None, is_paid: bool) -> None:
        booking_state = BookingStatus.PAID.value if is_paid else BookingStatus.FAILED.value
        payment_state = PaymentStatus.PAID.value if is_paid else PaymentStatus.FAILED.value
        if b:
            # Paid is terminal: a late failure report never undoes a recorded success.
            if is_paid or b.payment_status != PaymentStatus.PAID.value:
                b.status = booking_state
                b.payment_status = payment_state
                self.bookings.update(b)
        if payment:
            if is_paid or payment.status != PaymentStatus.PAID.value:
                payment.status = payment_state
                self.payments.update(payment)

    # apply_success_notification

    def apply_success_notification(self, intent_id: str, actor: str = "stripe_webhook") -> bool:
        """Returns True when the success was written to the ledger, False when ignored or failed."""
        try:
            b = self.bookings.find_by_payment_intent_id(intent_id)
            if not b:
                logger.info("Ignoring success event for unknown payment intent %s", intent_id)
                return False
            payment = self.payments.find_by_booking_id(b.id)
            if not payment:
                logger.info("Ignoring success event for intent %s: booking %s has no payment", intent_id, b.id)
                return False

            payment.status = PaymentStatus.PAID.value
            self.payments.update(payment)
            b.payment_status = PaymentStatus.PAID.value
            b.status = BookingStatus.CONFIRMED.value
            self.bookings.update(b)

            txn = self.transactions.add_once(Transaction(
                payment_intent_id=intent_id,
                booking_id=b.id,
                payment_id=payment.id,
                amount=payment.amount,
                payment_method=payment.payment_method,
                status=TransactionStatus.COMPLETED.value,
                transaction_date=datetime.now(timezone.utc),
            ))
            log_audit(self.db, actor, "payment_paid_webhook", "booking", b.id,
                      {"intent": intent_id, "duplicate": txn is None})
            self.db.commit()
            return True
        except Exception:
            # Stripe redelivers the event and the sync job re-checks pending intents.
            self.db.rollback()
            logger.exception("internal_error applying success event for intent %s", intent_id)
            return False
