from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from paysync.models.payment import Payment
from paysync.repositories.base import Repository


class PaymentRepository(Repository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def find_by_booking_id(self, booking_id: int | None) -> Optional[Payment]:
        if booking_id is None:
            return None
        return self.db.execute(
            select(Payment).where(Payment.booking_id == booking_id)
        ).scalar_one_or_none()
