"""
Stripe gateway for checkout sessions and webhook verification.
Wraps the Stripe SDK calls used by the checkout and webhook services.
"""

import json
import logging
from collections import namedtuple
from typing import Any, Dict, List, Optional

import stripe
from flask import current_app

from restopos.exceptions import InvalidSignatureError

logger = logging.getLogger(__name__)

CheckoutSession = namedtuple('CheckoutSession', ['id', 'url'])


class StripeGateway:
    """Service to interact with the Stripe API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        payment_method_types: Optional[List[str]] = None
    ):
        """
        Initialize gateway with API keys.

        Args:
            secret_key: Stripe secret key. If None, read from app config STRIPE_SECRET_KEY
            webhook_secret: Webhook signing secret. If None, read from STRIPE_WEBHOOK_SECRET
            payment_method_types: Methods offered on the hosted page
        """
        self.secret_key = secret_key or current_app.config.get('STRIPE_SECRET_KEY')
        self.webhook_secret = webhook_secret or current_app.config.get('STRIPE_WEBHOOK_SECRET')
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        if not self.webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET is required")

        self.payment_method_types = payment_method_types or ['card', 'promptpay']

    def create_checkout_session(
        self,
        order_id: int,
        amount: int,
        currency: str,
        success_url: str,
        cancel_url: str
    ) -> CheckoutSession:
        """
        Create a hosted Checkout Session for a single order.

        Args:
            order_id: Local order id, sent back to us in session metadata
            amount: Amount to charge in minor units (satang for THB)
            currency: ISO currency code, lowercase
            success_url: Redirect after payment ({CHECKOUT_SESSION_ID} is filled by Stripe)
            cancel_url: Redirect when the customer abandons the page

        Returns:
            CheckoutSession(id, url)

        Raises:
            stripe.StripeError: If the Stripe API returns an error
        """
        logger.info(f"[STRIPE] Creating checkout session for order {order_id}: {amount} {currency}")

        session = stripe.checkout.Session.create(
            api_key=self.secret_key,
            payment_method_types=self.payment_method_types,
            line_items=[
                {
                    'price_data': {
                        'currency': currency,
                        'product_data': {'name': f"Order #{order_id}"},
                        'unit_amount': amount,
                    },
                    'quantity': 1,
                }
            ],
            mode='payment',
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={'orderId': str(order_id)},
        )

        logger.info(f"[STRIPE] Checkout session created: {session.id} for order {order_id}")
        return CheckoutSession(id=session.id, url=session.url)

    def expire_checkout_session(self, session_id: str) -> None:
        """Expire an open session so it can no longer be paid."""
        logger.info(f"[STRIPE] Expiring checkout session {session_id}")
        stripe.checkout.Session.expire(session_id, api_key=self.secret_key)

    def retrieve_payment_method_type(self, payment_intent_id: Optional[str]) -> Optional[str]:
        """
        Resolve the instrument actually used for a PaymentIntent (card, promptpay, ...).

        Returns None when there is no intent or the detail is unavailable.
        """
        if not payment_intent_id:
            return None

        try:
            intent = stripe.PaymentIntent.retrieve(
                payment_intent_id,
                api_key=self.secret_key,
                expand=['payment_method'],
            )
        except stripe.StripeError as e:
            logger.warning(f"[STRIPE] Could not retrieve payment intent {payment_intent_id}: {e}")
            return None

        payment_method = getattr(intent, 'payment_method', None)
        if payment_method is None or isinstance(payment_method, str):
            return None
        return getattr(payment_method, 'type', None)

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the event as a plain dict.

        Raises:
            InvalidSignatureError: If the signature or payload is invalid
        """
        if not signature:
            logger.warning("[STRIPE] Missing Stripe-Signature header")
            raise InvalidSignatureError()

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[STRIPE] Webhook signature verification failed: {e}")
            raise InvalidSignatureError()
        except ValueError as e:
            logger.warning(f"[STRIPE] Invalid webhook payload: {e}")
            raise InvalidSignatureError("Invalid payload")

        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        return json.loads(payload)


def get_gateway() -> StripeGateway:
    """Gateway registered on the current app."""
    return current_app.extensions['stripe_gateway']
