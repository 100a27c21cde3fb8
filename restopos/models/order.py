"""Order model."""
import enum
from decimal import Decimal
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, DateTime, ForeignKey, CheckConstraint, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from restopos.database import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""
    IN_PROGRESS = 'in-progress'
    READY = 'ready'
    WAITING_FOR_PAYMENT = 'waiting-for-payment'
    PAID = 'paid'
    CANCELLED = 'cancelled'

    @classmethod
    def values(cls):
        return [s.value for s in cls]

    @classmethod
    def parse(cls, value):
        """Return the status for a raw string, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_terminal(self):
        return self in (OrderStatus.PAID, OrderStatus.CANCELLED)


# Intended graph; the kitchen may skip "ready" and go straight to waiting-for-payment
ORDER_TRANSITIONS = {
    OrderStatus.IN_PROGRESS: {OrderStatus.READY, OrderStatus.WAITING_FOR_PAYMENT, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.WAITING_FOR_PAYMENT, OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.WAITING_FOR_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: set(),
    OrderStatus.CANCELLED: set(),
}


def can_transition(current, target):
    """Check whether the intended status graph allows current -> target."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    return target in ORDER_TRANSITIONS[current]


class Order(Base):
    """Restaurant order with embedded line items."""

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    table_number = Column(String(20), nullable=False)
    number_of_customers = Column(Integer, nullable=False)

    # Ordered list of {id, name, price, quantity}
    items = Column(JSON().with_variant(JSONB, 'postgresql'), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(30), nullable=False, default=OrderStatus.IN_PROGRESS.value,
                    server_default=OrderStatus.IN_PROGRESS.value, index=True)

    # Set together by the checkout flow
    coupon_id = Column(BigInteger, ForeignKey('coupons.id'), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=True)
    stripe_session_id = Column(String(255), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    coupon = relationship('Coupon')
    payments = relationship('Payment', back_populates='order', order_by='Payment.id')

    __table_args__ = (
        CheckConstraint(
            "status IN ('in-progress', 'ready', 'waiting-for-payment', 'paid', 'cancelled')",
            name='check_order_status'
        ),
        CheckConstraint('number_of_customers > 0', name='check_number_of_customers'),
        CheckConstraint(
            '(coupon_id IS NULL AND discount_amount IS NULL) OR '
            '(coupon_id IS NOT NULL AND discount_amount IS NOT NULL)',
            name='check_discount_with_coupon'
        ),
    )

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'table_number': self.table_number,
            'number_of_customers': self.number_of_customers,
            'items': self.items,
            'total_price': _decimal_out(self.total_price),
            'status': self.status,
            'coupon_id': self.coupon_id,
            'discount_amount': _decimal_out(self.discount_amount),
            'stripe_session_id': self.stripe_session_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Order(id={self.id}, table={self.table_number}, status={self.status})>"


def _decimal_out(value):
    """Render numerics as int when whole, float otherwise."""
    if value is None:
        return None
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else float(value)
