"""Payment model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from restopos.database import Base, BigIntPK


class Payment(Base):
    """
    Payment record for an order.

    Append-only: one row per completed payment action, either cash/card
    recorded by staff or a charge confirmed by the Stripe webhook.
    """

    __tablename__ = 'payments'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)

    # Only for provider-confirmed payments
    stripe_session_id = Column(String(255), nullable=True, index=True)
    payment_intent_id = Column(String(255), nullable=True)

    payment_method = Column(String(50), nullable=True)  # cash, card, promptpay
    payment_status = Column(String(30), nullable=False, default='succeeded')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'stripe_session_id': self.stripe_session_id,
            'payment_intent_id': self.payment_intent_id,
            'payment_method': self.payment_method,
            'payment_status': self.payment_status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, order_id={self.order_id}, method={self.payment_method})>"
