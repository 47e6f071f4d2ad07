import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from paysync.models.transaction import Transaction
from paysync.repositories.base import Repository

logger = logging.getLogger(__name__)


class TransactionRepository(Repository[Transaction]):
    """Append-only ledger. There is deliberately no delete and ``update`` is refused."""

    def __init__(self, db: Session):
        super().__init__(db, Transaction)

    def find_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Transaction]:
        return self.db.execute(
            select(Transaction).where(Transaction.payment_intent_id == payment_intent_id)
        ).scalar_one_or_none()

    def find_by_payment_id(self, payment_id: int) -> list[Transaction]:
        return list(self.db.scalars(select(Transaction).where(Transaction.payment_id == payment_id)))

    def update(self, obj: Transaction) -> Transaction:
        raise TypeError("transactions are append-only")

    def add_once(self, txn: Transaction) -> Optional[Transaction]:
        """Insert ``txn`` unless its intent already has a transaction.

        The unique index on ``payment_intent_id`` decides races between the
        confirm path and the webhook path; the loser gets ``None`` and the
        surrounding unit of work stays usable.
        """
        if self.find_by_payment_intent_id(txn.payment_intent_id) is not None:
            return None
        try:
            with self.db.begin_nested():
                self.db.add(txn)
        except IntegrityError:
            logger.info("Transaction for intent %s already recorded; skipping duplicate", txn.payment_intent_id)
            return None
        return txn
