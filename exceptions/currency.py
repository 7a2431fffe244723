"""
Currency exceptions.
"""

from .base import StorefrontException


class UnsupportedCurrencyException(StorefrontException):
    """Raised when a currency code is not in the rate table."""

    def __init__(self, code: str):
        super().__init__(
            f"Unsupported currency {code}",
            details={'code': code}
        )
        self.code = code
