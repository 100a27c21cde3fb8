"""Models package - exports all SQLAlchemy models."""
from restopos.models.coupon import Coupon, DiscountType
from restopos.models.order import Order, OrderStatus, ORDER_TRANSITIONS, can_transition
from restopos.models.payment import Payment
from restopos.models.webhook_event import WebhookEvent

__all__ = [
    'Coupon', 'DiscountType',
    'Order', 'OrderStatus', 'ORDER_TRANSITIONS', 'can_transition',
    'Payment',
    'WebhookEvent',
]
