import logging
from datetime import datetime, timezone, timedelta
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError, OperationalError
from paysync.core.config import settings
from paysync.db.session import SessionLocal
from paysync.repositories.booking import BookingRepository
from paysync.services.payment_reconciler import PaymentReconciler
from paysync.services.stripe_gateway import GatewayError, SUCCEEDED, build_gateway

logger = logging.getLogger(__name__)

def sync_pending_payments(limit: int = 50, db: Session | None = None, gateway=None):
    """Apply successes for pending intents whose webhook never arrived."""
    if gateway is None:
        gateway = build_gateway(settings)
    if gateway is None:
        return {"skipped": True, "reason": "gateway_not_configured"}

    own_session = db is None
    db = db or SessionLocal()
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.PENDING_SYNC_MIN_AGE_MINUTES)
        try:
            pending = BookingRepository(db).list_pending_with_intent(cutoff, limit=limit)
        except (ProgrammingError, OperationalError):
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}

        intent_ids = [b.payment_intent_id for b in pending]
        reconciler = PaymentReconciler(db, settings, gateway)
        applied, errors = 0, 0
        for intent_id in intent_ids:
            try:
                intent = gateway.get_intent(intent_id)
            except GatewayError as e:
                errors += 1
                logger.warning("sync_pending_payments: could not retrieve %s: %s", intent_id, e)
                continue
            if intent.status != SUCCEEDED:
                continue
            if reconciler.apply_success_notification(intent_id, actor="sync_job"):
                applied += 1
            else:
                errors += 1
        return {"checked": len(intent_ids), "applied": applied, "errors": errors}
    finally:
        if own_session:
            db.close()
