"""
Coupon-related exceptions.

Coupon lookups report failures as CouponApplyResultDTO values; these exceptions
are used where a coupon record itself is unusable.
"""

from .base import StorefrontException


class CouponException(StorefrontException):
    """Base exception for coupon-related errors."""
    pass


class InvalidCouponDataException(CouponException):
    """Raised when a stored coupon document does not match the coupon schema."""

    def __init__(self, code: str, reason: str):
        super().__init__(
            f"Coupon {code} has invalid data: {reason}",
            details={'code': code, 'reason': reason}
        )
        self.code = code
        self.reason = reason
