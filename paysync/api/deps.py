from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from paysync.core.config import settings
from paysync.db.session import get_db
from paysync.services.payment_reconciler import PaymentReconciler
from paysync.services.stripe_gateway import StripeGateway, build_gateway


@lru_cache(maxsize=1)
def get_gateway() -> StripeGateway | None:
    return build_gateway(settings)


def get_reconciler(db: Session = Depends(get_db)) -> PaymentReconciler:
    return PaymentReconciler(db, settings, get_gateway())
