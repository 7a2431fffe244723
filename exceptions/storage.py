"""
Storage and lifecycle exceptions.
"""

from .base import StorefrontException


class StorageException(StorefrontException):
    """Base exception for remote/local storage errors."""
    pass


class DocumentStoreException(StorageException):
    """Raised when the remote document store cannot be read or written."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Document store operation failed for {path}: {reason}",
            details={'path': path, 'reason': reason}
        )
        self.path = path
        self.reason = reason


class ConcurrentModificationException(StorageException):
    """Raised when a compare-and-set write finds a different version than expected."""

    def __init__(self, path: str, expected_version: int):
        super().__init__(
            f"Document {path} was modified concurrently (expected version {expected_version})",
            details={'path': path, 'expected_version': expected_version}
        )
        self.path = path
        self.expected_version = expected_version


class RetryExhaustedException(StorageException):
    """Raised when maximum retry attempts are exhausted."""

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"{operation} failed after {attempts} attempts",
            details={'operation': operation, 'attempts': attempts}
        )
        self.operation = operation
        self.attempts = attempts


class StoreNotBoundException(StorageException):
    """Raised when a store is accessed outside a started storefront."""

    def __init__(self, store_name: str):
        super().__init__(
            f"{store_name} store accessed outside a running Storefront; call Storefront.start() first",
            details={'store': store_name}
        )
        self.store_name = store_name
