"""Orders blueprint - order capture and kitchen/payment dashboard transitions."""
from flask import Blueprint, jsonify, current_app
from restopos.database import get_session
from restopos.utils.request_helpers import json_body
from restopos.exceptions import InvalidRequestError
from restopos.services.order_service import OrderService

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _service() -> OrderService:
    return OrderService(
        get_session(),
        strict_transitions=current_app.config.get('STRICT_ORDER_TRANSITIONS', False)
    )


@orders_bp.route('', methods=['GET'])
def list_orders():
    """All orders, newest first."""
    orders = _service().list_orders()
    return jsonify([o.to_dict() for o in orders])


@orders_bp.route('', methods=['POST'])
def create_order():
    """Create a new order from the POS screen."""
    data = json_body()

    order = _service().create_order(
        table_number=data.get('tableNumber'),
        number_of_customers=data.get('numberOfCustomers'),
        items=data.get('items'),
        total_price=data.get('totalPrice'),
    )
    return jsonify(order.to_dict()), 201


@orders_bp.route('/<order_id>', methods=['GET'])
def get_order(order_id):
    order = _service().get_order(order_id)
    return jsonify(order.to_dict())


@orders_bp.route('/<order_id>', methods=['PATCH'])
def update_order_status(order_id):
    """Manual status change (mark ready, mark paid, cancel)."""
    data = json_body()
    status = data.get('status')
    if not status:
        raise InvalidRequestError('Missing required field: status')

    order = _service().set_order_status(order_id, status)
    return jsonify({
        'message': 'Order status updated',
        'order': order.to_dict()
    })
