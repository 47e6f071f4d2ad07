from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class PaymentIntentOut(BaseModel):
    bookingId: int
    totalPrice: Decimal
    paymentIntentId: Optional[str] = None
    clientSecret: Optional[str] = None
    paymentStatus: str
    status: str
    # False when the gateway is not configured and no intent was created.
    gatewayEnabled: bool = True


class ConfirmIntentOut(BaseModel):
    ok: bool
    intentId: str


class WebhookAck(BaseModel):
    ok: bool = True
    eventType: str = ""
    handled: bool = False
