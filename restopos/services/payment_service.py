"""Manual payment recording (cash or card taken at the counter)."""
import logging

from sqlalchemy.orm import Session

from restopos.exceptions import InvalidRequestError, OrderNotFoundError
from restopos.models import Order, Payment
from restopos.services.order_service import parse_order_id

logger = logging.getLogger(__name__)


def record_payment(session: Session, order_id, payment_method: str = None, payment_status: str = None) -> Payment:
    """
    Append a payment row recorded by staff.

    Args:
        session: SQLAlchemy session
        order_id: Order being paid
        payment_method: 'cash' unless given
        payment_status: 'succeeded' unless given

    Returns:
        Payment object

    The order status is not changed here; the payment dashboard marks the
    order paid through PATCH /orders/<id>.
    """
    if order_id in (None, ''):
        raise InvalidRequestError('Missing required field: orderId')

    order_id = parse_order_id(order_id)
    if not session.get(Order, order_id):
        raise OrderNotFoundError(order_id)

    payment = Payment(
        order_id=order_id,
        payment_method=payment_method or 'cash',
        payment_status=payment_status or 'succeeded',
    )
    session.add(payment)

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[PAYMENTS] Recorded {payment.payment_method} payment for order {order_id}")
    return payment
