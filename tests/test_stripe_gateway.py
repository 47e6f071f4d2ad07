import types

import pytest
import stripe

from paysync.core.config import Settings
from paysync.services.stripe_gateway import StripeGateway, StripeConfig, GatewayError, build_gateway


def _stripe_intent(**kwargs):
    data = {"id": "pi_real_123", "status": "requires_payment_method", "amount": 12000,
            "client_secret": "pi_real_123_secret_abc"}
    data.update(kwargs)
    return types.SimpleNamespace(**data)


@pytest.fixture
def stripe_gateway():
    return StripeGateway(StripeConfig(secret_key="sk_test_123", timeout=5))


def _fake_service(**methods):
    return types.SimpleNamespace(payment_intents=types.SimpleNamespace(**methods))


def test_build_gateway_degraded_without_key():
    assert build_gateway(Settings(STRIPE_SECRET_KEY="")) is None


def test_build_gateway_with_key():
    gw = build_gateway(Settings(STRIPE_SECRET_KEY="sk_test_123", STRIPE_TIMEOUT_SECONDS=7))
    assert isinstance(gw, StripeGateway)
    assert gw.cfg.timeout == 7


def test_key_stays_off_module_globals(stripe_gateway):
    assert stripe.api_key != "sk_test_123"


def test_create_intent_sends_amount_currency_and_methods(stripe_gateway):
    captured = {}

    def fake_create(params=None, options=None):
        captured["params"] = params
        return _stripe_intent()

    stripe_gateway._client = _fake_service(create=fake_create)

    intent = stripe_gateway.create_intent(amount=12000, currency="usd", method_types=["card"])

    assert captured["params"] == {"amount": 12000, "currency": "usd", "payment_method_types": ["card"]}
    assert intent.id == "pi_real_123"
    assert intent.client_secret == "pi_real_123_secret_abc"
    assert intent.amount == 12000


def test_update_and_confirm_pass_intent_id(stripe_gateway):
    captured = []

    def fake_update(intent_id, params=None, options=None):
        captured.append(("update", intent_id, params))
        return _stripe_intent(id=intent_id, amount=params["amount"])

    def fake_confirm(intent_id, params=None, options=None):
        captured.append(("confirm", intent_id, params))
        return _stripe_intent(id=intent_id, status="succeeded")

    stripe_gateway._client = _fake_service(update=fake_update, confirm=fake_confirm)

    assert stripe_gateway.update_intent("pi_1", amount=500).amount == 500
    assert stripe_gateway.confirm_intent("pi_1", payment_method="pm_card_visa").status == "succeeded"
    assert captured == [
        ("update", "pi_1", {"amount": 500}),
        ("confirm", "pi_1", {"payment_method": "pm_card_visa"}),
    ]


def test_card_error_is_not_retryable(stripe_gateway):
    def fake_confirm(intent_id, params=None, options=None):
        raise stripe.CardError("Your card was declined.", "payment_method", "card_declined")

    stripe_gateway._client = _fake_service(confirm=fake_confirm)

    with pytest.raises(GatewayError) as exc:
        stripe_gateway.confirm_intent("pi_1", payment_method="pm_card_chargeDeclined")

    assert exc.value.code == "card_declined"
    assert exc.value.retryable is False
    assert "CardError" in str(exc.value)


def test_timeout_is_retryable(stripe_gateway):
    def fake_retrieve(intent_id, params=None, options=None):
        raise stripe.APIConnectionError("Request timed out")

    stripe_gateway._client = _fake_service(retrieve=fake_retrieve)

    with pytest.raises(GatewayError) as exc:
        stripe_gateway.get_intent("pi_1")

    assert exc.value.retryable is True
