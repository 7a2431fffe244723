"""
Custom exceptions for the storefront core.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
StorefrontException (base)
├── CartException
│   └── InvalidCartItemException
├── CouponException
│   └── InvalidCouponDataException
├── RewardsException
│   ├── InsufficientPointsException
│   └── LedgerInconsistencyException
├── StorageException
│   ├── DocumentStoreException
│   ├── ConcurrentModificationException
│   ├── RetryExhaustedException
│   └── StoreNotBoundException
└── UnsupportedCurrencyException

Usage:
------
Validation and lookup failures are returned as values (bool or result DTOs).
Exceptions are reserved for I/O failures and programming-contract violations:
    raise StoreNotBoundException("cart")

The outer layer maps them to user-facing messages:
    try:
        await storefront.cart.add_to_cart(product)
    except StorefrontException as e:
        message = handle_service_error(e)
"""

from .base import StorefrontException
from .cart import CartException, InvalidCartItemException
from .coupon import CouponException, InvalidCouponDataException
from .currency import UnsupportedCurrencyException
from .rewards import RewardsException, InsufficientPointsException, LedgerInconsistencyException
from .storage import (
    StorageException,
    DocumentStoreException,
    ConcurrentModificationException,
    RetryExhaustedException,
    StoreNotBoundException,
)

__all__ = [
    # Base
    'StorefrontException',

    # Cart
    'CartException',
    'InvalidCartItemException',

    # Coupon
    'CouponException',
    'InvalidCouponDataException',

    # Currency
    'UnsupportedCurrencyException',

    # Rewards
    'RewardsException',
    'InsufficientPointsException',
    'LedgerInconsistencyException',

    # Storage
    'StorageException',
    'DocumentStoreException',
    'ConcurrentModificationException',
    'RetryExhaustedException',
    'StoreNotBoundException',
]
