from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column, validates
from datetime import datetime, timezone
from paysync.db.session import Base
from paysync.enums.booking_status import BookingStatus
from paysync.enums.payment_status import PaymentStatus

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)

    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))

    # Gateway reference; unique so webhook/confirm lookups are point reads.
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    client_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)

    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)  # Pending, Paid, Failed
    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING.value)  # Pending, Confirmed, Paid, Failed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @validates("payment_intent_id")
    def _blank_intent_is_null(self, key, value):
        # "" and NULL both mean no intent yet; only NULL may repeat under the unique index.
        return value or None
