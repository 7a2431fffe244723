"""
Loyalty rewards exceptions.
"""

from .base import StorefrontException


class RewardsException(StorefrontException):
    """Base exception for rewards-related errors."""
    pass


class InsufficientPointsException(RewardsException):
    """Raised when the remote balance no longer covers a redemption."""

    def __init__(self, user_id: str, required: int, available: int):
        super().__init__(
            f"Insufficient points for user {user_id}: required {required}, available {available}",
            details={'user_id': user_id, 'required': required, 'available': available}
        )
        self.user_id = user_id
        self.required = required
        self.available = available


class LedgerInconsistencyException(RewardsException):
    """Raised when a rewards account violates the running-balance invariant."""

    def __init__(self, user_id: str | None, reason: str):
        super().__init__(
            f"Rewards ledger for user {user_id} is inconsistent: {reason}",
            details={'user_id': user_id, 'reason': reason}
        )
        self.user_id = user_id
        self.reason = reason
