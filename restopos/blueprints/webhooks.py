"""
Webhooks Blueprint for Stripe notifications.
Settles orders when a Checkout Session completes.
"""

import logging
from flask import Blueprint, request, jsonify
from restopos.database import get_session
from restopos.exceptions import InvalidSignatureError
from restopos.services.stripe_gateway import get_gateway
from restopos.services.webhook_service import WebhookService
from restopos.blueprints.metrics import webhook_events_total

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


@webhooks_bp.route('/stripe', methods=['POST'])
@webhooks_bp.route('/provider', methods=['POST'])
def stripe_webhook():
    """
    Handle Stripe webhook notifications.

    Expected events:
    - checkout.session.completed

    Any other event type is acknowledged and ignored. The raw body is used
    for signature verification, so it must not be parsed before that.
    """
    signature = request.headers.get('Stripe-Signature', '')
    raw_body = request.get_data()

    service = WebhookService(get_session(), get_gateway())
    try:
        ack = service.handle_provider_event(raw_body, signature)
    except InvalidSignatureError as e:
        webhook_events_total.labels(outcome='invalid_signature').inc()
        logger.warning(f"Rejected Stripe webhook: {e.message}")
        return jsonify({'error': e.message}), 400

    webhook_events_total.labels(outcome=service.last_outcome or 'unknown').inc()
    return jsonify(ack), 200
