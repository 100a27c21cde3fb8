"""Checkout blueprint - Stripe Checkout Session creation."""
from flask import Blueprint, request, jsonify, current_app
from restopos.database import get_session
from restopos.utils.request_helpers import json_body
from restopos.exceptions import PosError
from restopos.services.checkout_service import CheckoutService
from restopos.services.stripe_gateway import get_gateway
from restopos.blueprints.metrics import checkout_sessions_total

checkout_bp = Blueprint('checkout', __name__)


@checkout_bp.route('/create-checkout-session', methods=['POST'])
def create_checkout_session():
    """
    Create a Checkout Session for an order.

    Body: {orderId, amount, currency?, couponCode?}
    Returns: {url, discountAmount}
    """
    data = json_body()
    coupon_code = data.get('couponCode') or None
    origin = request.headers.get('Origin') or current_app.config.get('APP_BASE_URL')

    service = CheckoutService(
        get_session(),
        get_gateway(),
        default_currency=current_app.config.get('DEFAULT_CURRENCY', 'thb')
    )

    try:
        result = service.create_checkout_session(
            order_id=data.get('orderId'),
            amount=data.get('amount'),
            currency=data.get('currency'),
            coupon_code=coupon_code,
            origin=origin,
        )
    except PosError as e:
        checkout_sessions_total.labels(outcome=type(e).__name__, with_coupon=bool(coupon_code)).inc()
        raise

    checkout_sessions_total.labels(outcome='created', with_coupon=bool(coupon_code)).inc()
    return jsonify({'url': result['url'], 'discountAmount': result['discountAmount']})
