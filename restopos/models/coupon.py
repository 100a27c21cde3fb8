"""Coupon model."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from restopos.database import Base, BigIntPK


class DiscountType:
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'

    ALL = (PERCENTAGE, FIXED)


class Coupon(Base):
    """Discount coupon applied at checkout."""

    __tablename__ = 'coupons'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True, index=True)  # case-sensitive
    discount_type = Column(String(20), nullable=False)
    # Percentage in [0, 100] or a fixed amount in minor currency units
    discount_value = Column(Numeric(12, 2), nullable=False)

    start_date = Column(DateTime(timezone=True), nullable=True)
    expiration_date = Column(DateTime(timezone=True), nullable=False)

    max_uses = Column(Integer, nullable=True)
    times_used = Column(Integer, nullable=False, default=0, server_default='0')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("discount_type IN ('percentage', 'fixed')", name='check_discount_type'),
        CheckConstraint('times_used >= 0', name='check_times_used'),
    )

    @property
    def remaining_uses(self):
        if self.max_uses is None:
            return None
        return max(self.max_uses - (self.times_used or 0), 0)

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'code': self.code,
            'discount_type': self.discount_type,
            'discount_value': float(self.discount_value) if self.discount_value is not None else None,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'expiration_date': self.expiration_date.isoformat() if self.expiration_date else None,
            'max_uses': self.max_uses,
            'times_used': self.times_used,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Coupon(code='{self.code}', type={self.discount_type}, used={self.times_used}/{self.max_uses})>"
