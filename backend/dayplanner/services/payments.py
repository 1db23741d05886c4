"""Stripe adapter: checkout session creation and webhook verification.

The webhook signature check is the only trust boundary between Stripe and the
fulfillment pipeline, so `verify` never decodes a body it has not authenticated.
"""
import asyncio
from typing import Any, Optional, Tuple

import stripe

from dayplanner.core.config import logger
from dayplanner.core.errors import CheckoutFailure, SignatureInvalid, WebhookNotConfigured
from dayplanner.schemas.itinerary import PaymentEvent, PaymentEventType, PendingRequest


def _field(obj: Any, key: str) -> Any:
    """Reads a key from a Stripe object or a plain dict, returning None when absent."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class PaymentGateway:
    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        price_cents: int = 100,
        currency: str = "usd",
        frontend_url: str = "http://localhost:3000",
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.price_cents = price_cents
        self.currency = currency
        self.frontend_url = frontend_url.rstrip("/")

    async def create_checkout_session(self, request: PendingRequest) -> Tuple[str, str]:
        """
        Creates a one-item Stripe checkout session for the request.
        Returns (session_id, redirect_url). The request's own session_id is ignored;
        Stripe issues the id.
        """
        if not self.api_key:
            raise CheckoutFailure("Stripe is not configured")

        params = dict(
            api_key=self.api_key,
            payment_method_types=["card"],
            mode="payment",
            customer_email=request.email,
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": "Custom Day Itinerary",
                            "description": f"A personalized day plan for {request.city}",
                        },
                        "unit_amount": self.price_cents,
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{self.frontend_url}/thank-you",
            cancel_url=f"{self.frontend_url}/",
            metadata={"email": request.email, "city": request.city, "date": request.date},
        )
        try:
            session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
        except stripe.StripeError as e:
            logger.error(f"[STRIPE] Checkout session creation failed: {e}")
            raise CheckoutFailure(str(e)) from e

        logger.info(f"[STRIPE] Created checkout session {session.id} for {request.email}")
        return session.id, session.url

    def verify(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """
        Authenticates a webhook body against the shared secret, then decodes it.
        Raises SignatureInvalid for a missing/bad/stale signature or an unparsable body.
        """
        if not self.webhook_secret:
            logger.error("[STRIPE] STRIPE_WEBHOOK_SECRET not configured; refusing webhook")
            raise WebhookNotConfigured("Webhook secret is not configured")
        if not signature:
            logger.warning("[STRIPE] Webhook rejected: missing Stripe-Signature header")
            raise SignatureInvalid("Missing signature")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[STRIPE] Webhook signature verification failed: {e}")
            raise SignatureInvalid(str(e)) from e
        except ValueError as e:
            logger.warning(f"[STRIPE] Webhook payload could not be parsed: {e}")
            raise SignatureInvalid(f"Invalid payload: {e}") from e

        return self.decode(event)

    @staticmethod
    def decode(event: Any) -> PaymentEvent:
        event_type = _field(event, "type")
        logger.info(f"[STRIPE] Webhook event type: {event_type}")
        if event_type != PaymentEventType.CHECKOUT_COMPLETED.value:
            return PaymentEvent(type=PaymentEventType.OTHER)

        session = _field(_field(event, "data"), "object")
        email = (
            _field(_field(session, "metadata"), "email")
            or _field(_field(session, "customer_details"), "email")
            or _field(session, "customer_email")
        )
        return PaymentEvent(
            type=PaymentEventType.CHECKOUT_COMPLETED,
            session_id=_field(session, "id"),
            confirmed_email=email,
        )
