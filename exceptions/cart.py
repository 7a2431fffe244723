"""
Cart-related exceptions.
"""

from .base import StorefrontException


class CartException(StorefrontException):
    """Base exception for cart-related errors."""
    pass


class InvalidCartItemException(CartException):
    """Raised when a product payload cannot be turned into a cart line."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid cart item: {reason}",
            details={'reason': reason}
        )
        self.reason = reason
