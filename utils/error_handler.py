"""
Error Handler Utility for the storefront's outer layer

Turns storefront exceptions into short messages that can be shown to the
shopper, and logs them for debugging.

Usage:
    from utils.error_handler import handle_service_error

    try:
        await storefront.cart.add_to_cart(product)
    except StorefrontException as e:
        message = handle_service_error(e)
"""

import logging

from exceptions import (
    StorefrontException,
    InvalidCartItemException,
    InvalidCouponDataException,
    UnsupportedCurrencyException,
    InsufficientPointsException,
    LedgerInconsistencyException,
    DocumentStoreException,
    ConcurrentModificationException,
    RetryExhaustedException,
    StoreNotBoundException,
)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."

# Exception type -> message template; templates may use the exception's attributes
ERROR_MESSAGES: dict[type[StorefrontException], str] = {
    # Cart
    InvalidCartItemException: "This product cannot be added to the cart",

    # Coupon
    InvalidCouponDataException: "Error verifying code",

    # Currency
    UnsupportedCurrencyException: "Currency {code} is not supported",

    # Rewards
    InsufficientPointsException: "Insufficient points: {available} available, {required} required",
    LedgerInconsistencyException: "Your rewards balance is being updated, please try again shortly",

    # Storage
    DocumentStoreException: "We could not reach our servers. Your changes will be retried",
    ConcurrentModificationException: "This was changed elsewhere, please try again",
    RetryExhaustedException: "The service is busy, please try again",
    StoreNotBoundException: GENERIC_ERROR_MESSAGE,
}


def handle_service_error(exception: StorefrontException) -> str:
    """
    Convert a storefront exception to a user-friendly message.

    The closest mapped base class wins, so new subclasses fall back to their
    family's message.
    """
    logging.warning(f"Service error handled: {type(exception).__name__} - {str(exception)}")

    template = None
    for exception_type in type(exception).__mro__:
        template = ERROR_MESSAGES.get(exception_type)
        if template is not None:
            break

    if template is None:
        logging.error(f"Unmapped exception type: {type(exception).__name__}")
        return GENERIC_ERROR_MESSAGE

    try:
        return template.format(**vars(exception))
    except (KeyError, IndexError) as e:
        logging.error(f"Missing format parameter in error message: {e}")
        return template


def handle_unexpected_error(exception: Exception) -> str:
    """Log an exception that is not a StorefrontException and return the generic message."""
    logging.error(f"Unexpected error: {type(exception).__name__} - {str(exception)}", exc_info=True)
    return GENERIC_ERROR_MESSAGE
