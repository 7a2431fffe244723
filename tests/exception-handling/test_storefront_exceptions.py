"""
Tests for the storefront exception hierarchy and where services raise them.
"""
import pytest
from unittest.mock import AsyncMock, patch

from exceptions import (
    StorefrontException,
    CartException,
    InvalidCartItemException,
    CouponException,
    InvalidCouponDataException,
    RewardsException,
    InsufficientPointsException,
    LedgerInconsistencyException,
    StorageException,
    DocumentStoreException,
    ConcurrentModificationException,
    RetryExhaustedException,
    StoreNotBoundException,
    UnsupportedCurrencyException,
)
from services.cart import CartStore
from services.coupon import CouponService
from services.currency import CurrencyService


class TestExceptionHierarchy:
    """Every storefront exception can be caught through its family and the base class."""

    @pytest.mark.parametrize("exception, family", [
        (InvalidCartItemException("missing price"), CartException),
        (InvalidCouponDataException("SAVE10", "bad type"), CouponException),
        (InsufficientPointsException("u1", 200, 50), RewardsException),
        (LedgerInconsistencyException("u1", "balance mismatch"), RewardsException),
        (DocumentStoreException("coupons/SAVE10", "timeout"), StorageException),
        (ConcurrentModificationException("coupons/SAVE10", 2), StorageException),
        (RetryExhaustedException("commit_transaction", 4), StorageException),
        (StoreNotBoundException("cart"), StorageException),
        (UnsupportedCurrencyException("JPY"), StorefrontException),
    ])
    def test_family(self, exception, family):
        assert isinstance(exception, family)
        assert isinstance(exception, StorefrontException)

    def test_details_are_kept(self):
        exc = ConcurrentModificationException("users/u1/rewards/main", 3)

        assert exc.details == {'path': "users/u1/rewards/main", 'expected_version': 3}
        assert "expected version 3" in str(exc)
        assert repr(exc).startswith("ConcurrentModificationException(")

    def test_insufficient_points_message(self):
        exc = InsufficientPointsException("u1", required=300, available=120)

        assert exc.required == 300
        assert exc.available == 120
        assert "required 300" in str(exc)
        assert "available 120" in str(exc)


class TestRaisedByServices:

    def test_invalid_cart_item(self):
        with pytest.raises(InvalidCartItemException):
            CartStore._to_cart_item({"id": "x", "name": "No price"})

    @pytest.mark.asyncio
    async def test_unsupported_currency(self, local_storage):
        currency = CurrencyService(local_storage)

        with pytest.raises(UnsupportedCurrencyException) as exc_info:
            await currency.set_currency("JPY")

        assert exc_info.value.code == "JPY"

    @pytest.mark.asyncio
    async def test_malformed_coupon_document(self, document_store):
        await document_store.set("coupons/BROKEN", {"type": "bogus", "value": 10})

        with pytest.raises(InvalidCouponDataException):
            await CouponService(document_store).lookup("broken")

    @pytest.mark.asyncio
    async def test_store_failure_is_wrapped(self, document_store):
        from sqlalchemy.exc import OperationalError

        with patch("services.document_store.DocumentRepository.get_by_path",
                   AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")))):
            with pytest.raises(DocumentStoreException) as exc_info:
                await document_store.get("coupons/SAVE10")

        assert exc_info.value.path == "coupons/SAVE10"
