"""Order creation and manual status transitions (kitchen / payment dashboards)."""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from restopos.exceptions import (
    InvalidRequestError, InvalidStatusError, InvalidTransitionError, OrderNotFoundError
)
from restopos.models import Order, OrderStatus, can_transition

logger = logging.getLogger(__name__)


def parse_order_id(value) -> int:
    """Coerce a path/body order id to int."""
    try:
        order_id = int(str(value))
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid order id: {value}")
    if order_id <= 0:
        raise InvalidRequestError(f"Invalid order id: {value}")
    return order_id


def parse_positive_int(value, message: str) -> int:
    """Accept ints, integral floats and digit strings; booleans and fractions are rejected."""
    if isinstance(value, bool):
        raise InvalidRequestError(message)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise InvalidRequestError(message)
    return value


class OrderService:
    """Order persistence and status controller."""

    def __init__(self, db_session: Session, strict_transitions: bool = False):
        """
        Args:
            db_session: SQLAlchemy session
            strict_transitions: Enforce the intended status graph on manual updates
        """
        self.db = db_session
        self.strict_transitions = strict_transitions

    def list_orders(self) -> List[Order]:
        return self.db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()

    def get_order(self, order_id) -> Order:
        order_id = parse_order_id(order_id)
        order = self.db.get(Order, order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    def create_order(self, table_number, number_of_customers, items, total_price) -> Order:
        """
        Create a new order in 'in-progress'.

        Items are stored as an embedded ordered list, not as separate rows.
        """
        if not table_number or not number_of_customers or not items or not total_price:
            logger.warning(
                f"[ORDERS] Missing required fields: table={table_number!r}, customers={number_of_customers!r}, "
                f"items={items!r}, total={total_price!r}"
            )
            raise InvalidRequestError('Missing required fields')

        number_of_customers = parse_positive_int(number_of_customers, 'numberOfCustomers must be a positive integer')
        if isinstance(total_price, bool):
            raise InvalidRequestError('totalPrice must be numeric')
        try:
            total_price = Decimal(str(total_price))
        except (TypeError, ValueError, InvalidOperation):
            raise InvalidRequestError('totalPrice must be numeric')

        if not total_price.is_finite() or total_price <= 0:
            raise InvalidRequestError('totalPrice must be positive')
        if not isinstance(items, list):
            raise InvalidRequestError('items must be a list')

        order = Order(
            table_number=str(table_number),
            number_of_customers=number_of_customers,
            items=[_normalize_item(item) for item in items],
            total_price=total_price,
        )
        self.db.add(order)

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"[ORDERS] Order {order.id} created for table {order.table_number} ({len(order.items)} items)")
        return order

    def set_order_status(self, order_id, new_status: str) -> Order:
        """
        Apply a manual status transition.

        In permissive mode (default) any known status may replace any other.
        """
        status = OrderStatus.parse(new_status)
        if status is None:
            raise InvalidStatusError(new_status, OrderStatus.values())

        order_id = parse_order_id(order_id)
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if not order:
            self.db.rollback()
            raise OrderNotFoundError(order_id)

        previous = order.status
        if self.strict_transitions and not can_transition(previous, status):
            self.db.rollback()
            raise InvalidTransitionError(previous, status.value)

        order.status = status.value
        order.updated_at = datetime.now(timezone.utc)

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"[ORDERS] Order {order_id} status {previous} -> {status.value}")
        return order


def _normalize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the line-item fields the dashboards rely on."""
    if not isinstance(item, dict):
        raise InvalidRequestError('Each item must be an object')
    try:
        quantity = int(item.get('quantity', 1))
    except (TypeError, ValueError):
        raise InvalidRequestError('Item quantity must be an integer')
    if quantity <= 0:
        raise InvalidRequestError('Item quantity must be positive')

    return {
        'id': item.get('id'),
        'name': item.get('name'),
        'price': item.get('price'),
        'quantity': quantity,
    }
