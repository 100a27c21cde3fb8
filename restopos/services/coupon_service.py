"""
Coupon evaluation and management.

The evaluator functions are pure: they look at a coupon record, an amount in
minor currency units and the current instant, and either return a quote or
raise one of the coupon exceptions. Consuming a use (times_used += 1) is the
caller's job, inside the caller's transaction.
"""
import logging
from collections import namedtuple
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from restopos.exceptions import (
    InvalidRequestError, CouponNotFoundError, CouponExpiredError, CouponExhaustedError,
    CouponRecordNotFoundError, CouponInUseError
)
from restopos.models import Coupon, DiscountType, Order

logger = logging.getLogger(__name__)

CouponQuote = namedtuple('CouponQuote', ['coupon_id', 'code', 'discount', 'discounted_amount'])


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_minor_units(value: Decimal) -> int:
    """Round half-up to a whole number of minor units."""
    return int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_discount(discount_type: str, discount_value, amount: int) -> int:
    """
    Compute the discount for an amount in minor units.

    percentage: round_half_up(amount * value / 100)
    fixed:      round_half_up(value), clamped so the charge never goes negative
    """
    value = Decimal(str(discount_value))
    if discount_type == DiscountType.PERCENTAGE:
        discount = round_minor_units(Decimal(amount) * value / Decimal(100))
    elif discount_type == DiscountType.FIXED:
        discount = round_minor_units(value)
    else:
        raise InvalidRequestError(f"Unknown discount type: {discount_type}")

    return min(max(discount, 0), amount)


def check_coupon_usable(coupon: Coupon, now: datetime) -> None:
    """Raise if the coupon is outside its validity window or used up."""
    now = as_utc(now)
    start = as_utc(coupon.start_date)
    expiration = as_utc(coupon.expiration_date)

    if start is not None and now < start:
        raise CouponExpiredError(coupon.code)
    if now > expiration:
        raise CouponExpiredError(coupon.code)

    if coupon.max_uses is not None and (coupon.times_used or 0) >= coupon.max_uses:
        raise CouponExhaustedError(coupon.code)


def evaluate_coupon(coupon: Optional[Coupon], amount: int, now: datetime, code: Optional[str] = None) -> CouponQuote:
    """
    Decide whether a coupon applies and quote the discount.

    Args:
        coupon: Coupon row matched by code, or None if the lookup found nothing
        amount: Positive amount in minor currency units
        now: Current instant
        code: Code the customer submitted (used for the not-found error)

    Returns:
        CouponQuote with the discount and the amount left to charge

    Raises:
        CouponNotFoundError, CouponExpiredError, CouponExhaustedError
    """
    if coupon is None:
        raise CouponNotFoundError(code)

    check_coupon_usable(coupon, now)
    discount = compute_discount(coupon.discount_type, coupon.discount_value, amount)

    return CouponQuote(
        coupon_id=coupon.id,
        code=coupon.code,
        discount=discount,
        discounted_amount=amount - discount
    )


def no_discount(amount: int) -> CouponQuote:
    return CouponQuote(coupon_id=None, code=None, discount=0, discounted_amount=amount)


def parse_datetime(value, field: str) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidRequestError(f"Invalid date for {field}: {value}")
    return as_utc(parsed)


class CouponService:
    """Coupon management (create, edit, delete) with range validation."""

    REQUIRED_FIELDS = ('code', 'discount_type', 'discount_value', 'expiration_date')

    def __init__(self, db_session: Session):
        self.db = db_session

    def list_coupons(self) -> List[Coupon]:
        return self.db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def find_by_code(self, code: str, for_update: bool = False) -> Optional[Coupon]:
        """Exact, case-sensitive lookup by code."""
        query = self.db.query(Coupon).filter(Coupon.code == code)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create_coupon(self, data: Dict[str, Any]) -> Coupon:
        fields = self._validate(data)
        if self.find_by_code(fields['code']):
            raise InvalidRequestError(f"Coupon code already exists: {fields['code']}")

        coupon = Coupon(**fields)
        self.db.add(coupon)
        self.db.commit()
        logger.info(f"[COUPON] Created coupon {coupon.code} ({coupon.discount_type} {coupon.discount_value})")
        return coupon

    def update_coupon(self, coupon_id: int, data: Dict[str, Any]) -> Coupon:
        coupon = self.db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponRecordNotFoundError(coupon_id)

        fields = self._validate(data)
        clash = self.find_by_code(fields['code'])
        if clash and clash.id != coupon.id:
            raise InvalidRequestError(f"Coupon code already exists: {fields['code']}")

        for key, value in fields.items():
            setattr(coupon, key, value)
        self.db.commit()
        logger.info(f"[COUPON] Updated coupon {coupon.id} ({coupon.code})")
        return coupon

    def delete_coupon(self, coupon_id: int) -> None:
        coupon = self.db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponRecordNotFoundError(coupon_id)

        in_use = self.db.query(Order.id).filter(Order.coupon_id == coupon.id).first()
        if in_use:
            raise CouponInUseError(coupon.code)

        self.db.delete(coupon)
        self.db.commit()
        logger.info(f"[COUPON] Deleted coupon {coupon_id}")

    def _validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        missing = [f for f in self.REQUIRED_FIELDS if data.get(f) in (None, '')]
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

        discount_type = data['discount_type']
        if discount_type not in DiscountType.ALL:
            raise InvalidRequestError(f"discount_type must be one of: {', '.join(DiscountType.ALL)}")

        try:
            discount_value = Decimal(str(data['discount_value']))
        except (InvalidOperation, ValueError):
            raise InvalidRequestError('discount_value must be a number')

        if not discount_value.is_finite():
            raise InvalidRequestError('discount_value must be a number')
        if discount_value < 0:
            raise InvalidRequestError('discount_value cannot be negative')
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise InvalidRequestError('Percentage discount must be between 0 and 100')

        max_uses = data.get('max_uses')
        if max_uses in ('', None):
            max_uses = None
        else:
            try:
                max_uses = int(max_uses)
            except (TypeError, ValueError):
                raise InvalidRequestError('max_uses must be an integer')
            if max_uses < 0:
                raise InvalidRequestError('max_uses cannot be negative')

        start_date = parse_datetime(data.get('start_date'), 'start_date')
        expiration_date = parse_datetime(data['expiration_date'], 'expiration_date')
        if start_date and start_date > expiration_date:
            raise InvalidRequestError('start_date must be before expiration_date')

        return {
            'code': str(data['code']).strip(),
            'discount_type': discount_type,
            'discount_value': discount_value,
            'start_date': start_date,
            'expiration_date': expiration_date,
            'max_uses': max_uses,
        }
