from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from paysync.db.session import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    actor: Mapped[str] = mapped_column(String(40), index=True)  # reconciler, stripe_webhook, sync_job
    action: Mapped[str] = mapped_column(String(80), index=True)  # e.g. payment_intent_created
    entity_type: Mapped[str] = mapped_column(String(40), index=True)  # booking, payment, transaction
    entity_id: Mapped[str] = mapped_column(String(255), index=True)
    details_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
