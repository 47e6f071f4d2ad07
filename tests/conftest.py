import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["STRIPE_SECRET_KEY"] = ""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from paysync.api.deps import get_reconciler
from paysync.core.config import Settings
from paysync.db.session import Base
from paysync.main import app
from paysync.models.booking import Booking
from paysync.models.payment import Payment
from paysync.services.payment_reconciler import PaymentReconciler
from paysync.services.stripe_gateway import GatewayError, GatewayIntent, SUCCEEDED

# Register every table on Base.metadata
import paysync.models.transaction  # noqa: F401
import paysync.models.audit_log  # noqa: F401


class FakeGateway:
    """In-memory stand-in for StripeGateway that records every call."""

    name = "Stripe"

    def __init__(self):
        self.calls = []
        self.intents = {}
        self.confirm_status = SUCCEEDED
        self.fail_with = None
        self._seq = 0

    def _record(self, op, *args):
        self.calls.append((op, *args))
        if self.fail_with is not None:
            raise self.fail_with

    @property
    def ops(self):
        return [c[0] for c in self.calls]

    def add_intent(self, intent_id, status="requires_confirmation", amount=0):
        self.intents[intent_id] = GatewayIntent(id=intent_id, status=status, amount=amount,
                                                client_secret=f"{intent_id}_secret_test")
        return self.intents[intent_id]

    def _lookup(self, intent_id):
        if intent_id not in self.intents:
            raise GatewayError(f"No such payment_intent: '{intent_id}'", code="resource_missing")
        return self.intents[intent_id]

    def create_intent(self, *, amount, currency, method_types):
        self._record("create", amount, currency, tuple(method_types))
        self._seq += 1
        return self.add_intent(f"pi_test_{self._seq}", status="requires_payment_method", amount=amount)

    def update_intent(self, intent_id, *, amount):
        self._record("update", intent_id, amount)
        intent = self._lookup(intent_id)
        intent.amount = amount
        return intent

    def get_intent(self, intent_id):
        self._record("get", intent_id)
        return self._lookup(intent_id)

    def confirm_intent(self, intent_id, *, payment_method):
        self._record("confirm", intent_id, payment_method)
        intent = self._lookup(intent_id)
        intent.status = self.confirm_status
        return intent

    def cancel_intent(self, intent_id):
        self._record("cancel", intent_id)
        intent = self._lookup(intent_id)
        intent.status = "canceled"
        return intent


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself.
    @event.listens_for(eng, "connect")
    def _no_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(STRIPE_SECRET_KEY="sk_test_123", PAYMENT_CURRENCY="usd", PAYMENT_METHOD_TYPES="card")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def reconciler(db, settings, gateway):
    return PaymentReconciler(db, settings, gateway)


@pytest.fixture
def make_booking(db):
    def _make(total="120.00", intent_id=None, payment_status="Pending", status="Pending",
              user_id="user-1", created_at=None):
        b = Booking(
            user_id=user_id,
            total_price=Decimal(total),
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret_test" if intent_id else None,
            payment_status=payment_status,
            status=status,
        )
        if created_at is not None:
            b.created_at = created_at
        db.add(b)
        db.commit()
        return b
    return _make


@pytest.fixture
def make_payment(db):
    def _make(booking, status="Pending", amount=None):
        p = Payment(
            booking_id=booking.id,
            user_id=booking.user_id,
            amount=amount if amount is not None else booking.total_price,
            status=status,
            payment_method="Stripe",
            created_at=datetime.now(timezone.utc),
        )
        db.add(p)
        db.commit()
        return p
    return _make


@pytest.fixture
def client(reconciler):
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
