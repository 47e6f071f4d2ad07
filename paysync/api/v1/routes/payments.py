from __future__ import annotations
import json
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request

from paysync.api.deps import get_reconciler
from paysync.core.config import settings
from paysync.models.booking import Booking
from paysync.schemas.payments import PaymentIntentOut, ConfirmIntentOut, WebhookAck
from paysync.services.payment_reconciler import PaymentReconciler, BookingNotFound
from paysync.services.stripe_gateway import GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

SUCCESS_EVENT = "payment_intent.succeeded"


def _intent_out(b: Booking, gateway_enabled: bool) -> PaymentIntentOut:
    return PaymentIntentOut(
        bookingId=b.id,
        totalPrice=b.total_price,
        paymentIntentId=b.payment_intent_id,
        clientSecret=b.client_secret,
        paymentStatus=b.payment_status,
        status=b.status,
        gatewayEnabled=gateway_enabled,
    )


def _parse_event(body: bytes, signature: str | None) -> dict:
    """Verify (when enabled) and decode a Stripe event payload."""
    if settings.STRIPE_WEBHOOK_VERIFY:
        if not signature or not settings.STRIPE_WEBHOOK_SECRET:
            raise HTTPException(status_code=400, detail="Missing webhook signature")
        try:
            return stripe.Webhook.construct_event(body, signature, settings.STRIPE_WEBHOOK_SECRET)
        except stripe.SignatureVerificationError:
            raise HTTPException(status_code=400, detail="Invalid webhook signature")
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return json.loads(body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid payload")


@router.post("/payments/bookings/{booking_id}/intent", response_model=PaymentIntentOut)
def ensure_payment_intent(booking_id: int, reconciler: PaymentReconciler = Depends(get_reconciler)):
    try:
        b = reconciler.ensure_intent(booking_id)
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="Booking not found")
    except GatewayError as e:
        raise HTTPException(status_code=503 if e.retryable else 502, detail=str(e))
    return _intent_out(b, gateway_enabled=reconciler.gateway is not None)


@router.post("/payments/intents/{intent_id}/confirm", response_model=ConfirmIntentOut)
def confirm_payment_intent(intent_id: str, reconciler: PaymentReconciler = Depends(get_reconciler)):
    return ConfirmIntentOut(ok=reconciler.confirm_intent(intent_id), intentId=intent_id)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(req: Request, reconciler: PaymentReconciler = Depends(get_reconciler)):
    body = await req.body()
    event = _parse_event(body, req.headers.get("stripe-signature"))

    event_type = str(event.get("type") or "")
    intent = (event.get("data") or {}).get("object") or {}
    intent_id = str(intent.get("id") or "")

    if event_type == SUCCESS_EVENT and intent_id:
        reconciler.apply_success_notification(intent_id)
        return WebhookAck(eventType=event_type, handled=True)

    logger.info("Acknowledged Stripe event %s (%s) without action", event.get("id"), event_type or "unknown")
    return WebhookAck(eventType=event_type, handled=False)
