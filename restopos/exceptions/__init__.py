"""Custom exceptions for the restaurant POS application."""


class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['error'] = self.message
        rv['status'] = 'error'
        return rv


class InvalidRequestError(PosError):
    """Missing or malformed input."""
    def __init__(self, message="Bad request", payload=None):
        super().__init__(message, 400, payload)


class InvalidStatusError(InvalidRequestError):
    """Raised when an order status is not one of the known values."""
    def __init__(self, status, allowed):
        message = f"Invalid status '{status}'. Must be one of: {', '.join(allowed)}"
        super().__init__(message, payload={'allowed': list(allowed)})


class InvalidTransitionError(PosError):
    """Raised when strict transitions are enabled and the move is not in the status graph."""
    def __init__(self, current, target):
        message = f"Cannot move order from '{current}' to '{target}'"
        super().__init__(message, 409, {'current': current, 'target': target})


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", {'order_id': order_id})


class CouponRecordNotFoundError(NotFoundError):
    """A coupon addressed by id (management API) does not exist."""
    def __init__(self, coupon_id):
        super().__init__(f"Coupon {coupon_id} not found", {'coupon_id': coupon_id})


class InvalidCouponError(PosError):
    """Base for every reason a coupon cannot be applied to a checkout."""
    def __init__(self, message="Invalid coupon", payload=None):
        super().__init__(message, 400, payload)


class CouponNotFoundError(InvalidCouponError):
    def __init__(self, code):
        super().__init__(f"Invalid coupon code: {code}", {'code': code})


class CouponExpiredError(InvalidCouponError):
    def __init__(self, code):
        super().__init__(f"Coupon {code} is expired or not yet active", {'code': code})


class CouponExhaustedError(InvalidCouponError):
    def __init__(self, code):
        super().__init__(f"Coupon {code} has reached its maximum number of uses", {'code': code})


class InvalidSignatureError(PosError):
    """Webhook payload failed provider signature verification."""
    def __init__(self, message="Invalid signature"):
        super().__init__(message, 400)


class UpstreamError(PosError):
    """Store or payment-provider failure; the underlying message is surfaced."""
    def __init__(self, message="Upstream failure", payload=None):
        super().__init__(message, 500, payload)


class CouponInUseError(PosError):
    """A coupon referenced by orders cannot be deleted."""
    def __init__(self, code):
        super().__init__(f"Coupon {code} is referenced by existing orders", 409, {'code': code})
