"""Payments blueprint - manual payment records from the payment dashboard."""
from flask import Blueprint, jsonify
from restopos.database import get_session
from restopos.utils.request_helpers import json_body
from restopos.services.payment_service import record_payment

payments_bp = Blueprint('payments', __name__, url_prefix='/payments')


@payments_bp.route('', methods=['POST'])
def create_payment():
    data = json_body()

    record_payment(
        get_session(),
        order_id=data.get('orderId'),
        payment_method=data.get('paymentMethod'),
        payment_status=data.get('paymentStatus'),
    )
    return jsonify({'success': True})
