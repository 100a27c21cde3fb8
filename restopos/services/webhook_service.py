"""
Stripe webhook processing.

Settles orders from checkout.session.completed events. Once the signature is
verified the provider always gets an acknowledgement; processing failures
are logged for operator follow-up instead of triggering redelivery.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restopos.models import Order, OrderStatus, Payment, WebhookEvent
from restopos.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = 'checkout.session.completed'

# Outcomes reported to metrics
PROCESSED = 'processed'
IGNORED = 'ignored'
DUPLICATE = 'duplicate'
FAILED = 'failed'


def build_dedupe_key(event_type: str, resource_id: str) -> str:
    """Stable key for one settlement of one checkout session."""
    return hashlib.sha256(f"{event_type}:{resource_id}".encode('utf-8')).hexdigest()


def resolve_payment_method(gateway: StripeGateway, session_obj: Dict[str, Any]) -> Optional[str]:
    """Instrument from the PaymentIntent, else the session's declared method types."""
    method = gateway.retrieve_payment_method_type(session_obj.get('payment_intent'))
    if method:
        return method

    declared = session_obj.get('payment_method_types') or []
    return ','.join(declared) or None


class WebhookService:
    """Payment webhook handler."""

    def __init__(self, db_session: Session, gateway: StripeGateway):
        self.db = db_session
        self.gateway = gateway
        self.last_outcome = None

    def handle_provider_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify and process one webhook delivery.

        Raises:
            InvalidSignatureError: Signature check failed (nothing is touched)

        Returns:
            dict acknowledgement for the provider
        """
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get('type')

        if event_type != CHECKOUT_COMPLETED:
            logger.info(f"[WEBHOOK] Ignoring event type: {event_type}")
            self.last_outcome = IGNORED
            return {'received': True}

        logger.info(f"[WEBHOOK] Received {CHECKOUT_COMPLETED} event {event.get('id')}")

        try:
            self.last_outcome = self._settle(event)
        except Exception as e:
            self.db.rollback()
            self.last_outcome = FAILED
            logger.exception(f"[WEBHOOK] Error settling event {event.get('id')}: {e}")

        return {'received': True}

    def _settle(self, event: Dict[str, Any]) -> str:
        session_obj = (event.get('data') or {}).get('object') or {}
        session_id = session_obj.get('id')
        payment_intent_id = session_obj.get('payment_intent')

        raw_order_id = (session_obj.get('metadata') or {}).get('orderId')
        if not raw_order_id or not str(raw_order_id).isdigit():
            logger.error(f"[WEBHOOK] No usable orderId in session {session_id} metadata: {raw_order_id!r}")
            return IGNORED
        order_id = int(raw_order_id)

        # Provider call before any local transaction is opened
        payment_method = resolve_payment_method(self.gateway, session_obj)

        log_entry = WebhookEvent(
            event_type=CHECKOUT_COMPLETED,
            provider_event_id=event.get('id'),
            resource_id=session_id,
            payload_json=event,
            dedupe_key=build_dedupe_key(CHECKOUT_COMPLETED, session_id or event.get('id') or ''),
            status=WebhookEvent.RECEIVED,
        )
        self.db.add(log_entry)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"[WEBHOOK] Session {session_id} already settled, skipping redelivery")
            return DUPLICATE

        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if not order:
            log_entry.status = WebhookEvent.IGNORED
            log_entry.processed_at = datetime.now(timezone.utc)
            self.db.commit()
            logger.error(f"[WEBHOOK] Order {order_id} from session {session_id} does not exist")
            return IGNORED

        if order.status == OrderStatus.CANCELLED.value:
            # Money moved anyway: keep the payment row, leave the order cancelled
            logger.warning(
                f"[WEBHOOK] Order {order_id} is cancelled but session {session_id} was paid; "
                f"recording payment without reopening the order"
            )
        else:
            order.status = OrderStatus.PAID.value
            order.stripe_session_id = session_id
            order.updated_at = datetime.now(timezone.utc)

        self.db.add(Payment(
            order_id=order_id,
            stripe_session_id=session_id,
            payment_intent_id=payment_intent_id,
            payment_method=payment_method,
            payment_status='succeeded',
        ))

        log_entry.status = WebhookEvent.PROCESSED
        log_entry.processed_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info(f"[WEBHOOK] Order {order_id} marked paid via {payment_method} (session {session_id})")
        return PROCESSED
