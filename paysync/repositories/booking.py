from typing import Optional
from sqlalchemy import select, update, or_
from sqlalchemy.orm import Session

from paysync.enums.booking_status import BookingStatus
from paysync.enums.payment_status import PaymentStatus
from paysync.models.booking import Booking
from paysync.models.payment import Payment
from paysync.repositories.base import Repository


class BookingRepository(Repository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def find_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Booking]:
        if not payment_intent_id:
            return None
        return self.db.execute(
            select(Booking).where(Booking.payment_intent_id == payment_intent_id)
        ).scalar_one_or_none()

    def get_for_update(self, booking_id: int) -> Optional[Booking]:
        """Load a booking holding its row lock until the session commits (no-op on SQLite)."""
        return self.db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        ).scalar_one_or_none()

    def list_pending_with_intent(self, created_before, limit: int = 50) -> list[Booking]:
        """Bookings whose payment row is still Pending although an intent exists.

        Keyed on the payment, not the booking: a confirm that found the intent
        already succeeded marks the booking Paid but leaves the payment Pending.
        """
        stmt = (
            select(Booking)
            .join(Payment, Payment.booking_id == Booking.id)
            .where(
                Payment.status == PaymentStatus.PENDING.value,
                Booking.payment_intent_id.is_not(None),
                Booking.payment_intent_id != "",
                Booking.created_at < created_before,
            )
            .order_by(Booking.id)
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def claim_payment_intent(
        self,
        booking_id: int,
        payment_intent_id: str,
        client_secret: str | None,
        expected_intent_id: str | None = None,
    ) -> bool:
        """Store an intent id only if the booking still holds ``expected_intent_id``.

        ``expected_intent_id=None`` means "no intent yet" (NULL or empty string).
        Returns False when another writer got there first.
        """
        if expected_intent_id:
            current = Booking.payment_intent_id == expected_intent_id
        else:
            current = or_(Booking.payment_intent_id.is_(None), Booking.payment_intent_id == "")
        values = {
            "payment_intent_id": payment_intent_id,
            "client_secret": client_secret,
            "payment_status": PaymentStatus.PENDING.value,
        }
        if expected_intent_id:
            # Replacing a failed intent puts the booking back in play.
            values["status"] = BookingStatus.PENDING.value
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
