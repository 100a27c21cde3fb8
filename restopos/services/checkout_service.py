"""
Checkout service - turns an order plus an optional coupon into a Stripe
Checkout Session and records the discount decision on the order.

Flow:
1. Validate input and quote the coupon (read only).
2. Create the Stripe session outside any store transaction.
3. Short local transaction: lock coupon and order rows, re-check the coupon,
   consume one use, persist coupon/discount/session id on the order.
4. If step 3 fails, roll back and expire the Stripe session.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from restopos.exceptions import (
    InvalidCouponError, InvalidRequestError, OrderNotFoundError, PosError, UpstreamError
)
from restopos.models import Order
from restopos.services.coupon_service import CouponService, evaluate_coupon, no_discount
from restopos.services.order_service import parse_order_id, parse_positive_int
from restopos.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def parse_amount(value) -> int:
    """Amount must be a positive whole number of minor units."""
    return parse_positive_int(value, 'amount must be a positive integer (minor currency units)')


class CheckoutService:
    """Checkout session orchestrator."""

    def __init__(self, db_session: Session, gateway: StripeGateway, default_currency: str = 'thb'):
        self.db = db_session
        self.gateway = gateway
        self.default_currency = default_currency

    def create_checkout_session(
        self,
        order_id,
        amount,
        currency: Optional[str] = None,
        coupon_code: Optional[str] = None,
        origin: str = 'http://localhost:3000',
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create a payable session for an order.

        Args:
            order_id: Local order id
            amount: Amount before discount, in minor units
            currency: ISO currency code (defaults to THB)
            coupon_code: Optional coupon code, matched case-sensitively
            origin: Base URL for the success/cancel redirects
            now: Evaluation instant (defaults to the current UTC time)

        Returns:
            dict with url, discountAmount and sessionId

        Raises:
            InvalidRequestError: Missing orderId/amount, malformed amount or couponCode
            OrderNotFoundError: Unknown order
            InvalidCouponError and subclasses: Coupon rejected
            UpstreamError: Stripe or store failure
        """
        if order_id in (None, '') or amount in (None, ''):
            raise InvalidRequestError('Missing required fields: orderId or amount')

        if coupon_code is not None and not isinstance(coupon_code, str):
            raise InvalidRequestError('couponCode must be a string')

        order_id = parse_order_id(order_id)
        amount = parse_amount(amount)
        currency = (currency or self.default_currency).lower()
        now = now or datetime.now(timezone.utc)

        quote = self._quote(order_id, amount, coupon_code, now)

        try:
            session = self.gateway.create_checkout_session(
                order_id=order_id,
                amount=quote.discounted_amount,
                currency=currency,
                success_url=f"{origin}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{origin}/checkout/cancel",
            )
        except Exception as e:
            logger.error(f"[CHECKOUT] Error creating Stripe session for order {order_id}: {e}")
            raise UpstreamError(str(e))

        try:
            self._record_checkout(order_id, quote, coupon_code, session.id, now)
        except PosError:
            self.db.rollback()
            self._abandon_session(session.id)
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"[CHECKOUT] Error recording checkout for order {order_id}")
            self._abandon_session(session.id)
            raise UpstreamError(str(e))

        logger.info(
            f"[CHECKOUT] Session {session.id} for order {order_id}: "
            f"amount={amount} discount={quote.discount} coupon={quote.code}"
        )
        return {
            'url': session.url,
            'discountAmount': quote.discount,
            'sessionId': session.id,
        }

    def _quote(self, order_id: int, amount: int, coupon_code: Optional[str], now: datetime):
        """Read-only validation before anything is created at Stripe."""
        try:
            if not self.db.get(Order, order_id):
                raise OrderNotFoundError(order_id)
            if not coupon_code:
                return no_discount(amount)
            coupon = CouponService(self.db).find_by_code(coupon_code)
            quote = evaluate_coupon(coupon, amount, now, code=coupon_code)
            # Stripe Checkout cannot collect a zero total
            if quote.discounted_amount <= 0:
                raise InvalidCouponError(
                    f"Coupon {coupon_code} covers the whole amount; settle this order at the counter",
                    {'code': coupon_code}
                )
            return quote
        finally:
            # Do not hold a transaction open across the Stripe call
            self.db.rollback()

    def _record_checkout(self, order_id: int, quote, coupon_code: Optional[str], session_id: str, now: datetime):
        """Consume the coupon and persist the discount in one transaction."""
        coupon = None
        if coupon_code:
            # Row lock so concurrent checkouts cannot both pass the max_uses check
            coupon = CouponService(self.db).find_by_code(coupon_code, for_update=True)
            locked_quote = evaluate_coupon(coupon, quote.discounted_amount + quote.discount, now, code=coupon_code)
            if locked_quote != quote:
                raise InvalidCouponError(f"Coupon {coupon_code} changed during checkout, please retry")
            coupon.times_used = (coupon.times_used or 0) + 1

        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if not order:
            raise OrderNotFoundError(order_id)

        # Overwrites whatever an earlier abandoned attempt left behind
        order.coupon_id = coupon.id if coupon else None
        order.discount_amount = Decimal(quote.discount) if coupon else None
        order.stripe_session_id = session_id
        order.updated_at = datetime.now(timezone.utc)

        self.db.commit()
        return quote

    def _abandon_session(self, session_id: str) -> None:
        """Best-effort compensation for a session with no local record."""
        try:
            self.gateway.expire_checkout_session(session_id)
        except Exception as e:
            logger.error(f"[CHECKOUT] Could not expire orphaned session {session_id}: {e}")
