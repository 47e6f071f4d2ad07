from dataclasses import dataclass

import stripe

from paysync.core.config import Settings

SUCCEEDED = "succeeded"

@dataclass
class StripeConfig:
    secret_key: str              # sk_test_... / sk_live_...
    timeout: int = 25            # seconds, per HTTP request
    max_network_retries: int = 2

@dataclass
class GatewayIntent:
    id: str
    status: str
    amount: int
    client_secret: str | None = None

class GatewayError(RuntimeError):
    """Any failure talking to Stripe: declines, invalid requests, network faults.

    ``retryable`` is True for conditions that may clear on their own
    (timeouts, connection errors, rate limiting).
    """

    def __init__(self, message: str, *, code: str | None = None, retryable: bool = False):
        super().__init__(message)
        self.code = code
        self.retryable = retryable

def _intent(obj) -> GatewayIntent:
    return GatewayIntent(
        id=obj.id,
        status=obj.status,
        amount=int(obj.amount or 0),
        client_secret=getattr(obj, "client_secret", None),
    )

def _wrap(e: stripe.StripeError) -> GatewayError:
    retryable = isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError))
    code = getattr(e, "code", None) or type(e).__name__
    return GatewayError(f"Stripe {type(e).__name__}: {e.user_message or str(e)}", code=code, retryable=retryable)

class StripeGateway:
    name = "Stripe"

    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg
        # Own client per instance: the api key never touches stripe's module globals.
        self._client = stripe.StripeClient(
            cfg.secret_key,
            http_client=stripe.RequestsClient(timeout=cfg.timeout),
            max_network_retries=cfg.max_network_retries,
        )

    def create_intent(self, *, amount: int, currency: str, method_types: list[str]) -> GatewayIntent:
        try:
            obj = self._client.payment_intents.create(params={
                "amount": amount,
                "currency": currency,
                "payment_method_types": method_types,
            })
        except stripe.StripeError as e:
            raise _wrap(e) from e
        return _intent(obj)

    def update_intent(self, intent_id: str, *, amount: int) -> GatewayIntent:
        try:
            obj = self._client.payment_intents.update(intent_id, params={"amount": amount})
        except stripe.StripeError as e:
            raise _wrap(e) from e
        return _intent(obj)

    def get_intent(self, intent_id: str) -> GatewayIntent:
        try:
            obj = self._client.payment_intents.retrieve(intent_id)
        except stripe.StripeError as e:
            raise _wrap(e) from e
        return _intent(obj)

    def confirm_intent(self, intent_id: str, *, payment_method: str) -> GatewayIntent:
        try:
            obj = self._client.payment_intents.confirm(intent_id, params={"payment_method": payment_method})
        except stripe.StripeError as e:
            raise _wrap(e) from e
        return _intent(obj)

    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        try:
            obj = self._client.payment_intents.cancel(intent_id)
        except stripe.StripeError as e:
            raise _wrap(e) from e
        return _intent(obj)

def build_gateway(settings: Settings) -> StripeGateway | None:
    """Return a configured gateway, or None when no secret key is set (degraded mode)."""
    if not settings.STRIPE_SECRET_KEY:
        return None
    return StripeGateway(StripeConfig(
        secret_key=settings.STRIPE_SECRET_KEY,
        timeout=settings.STRIPE_TIMEOUT_SECONDS,
        max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
    ))
