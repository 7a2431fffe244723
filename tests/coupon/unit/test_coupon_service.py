"""
Unit Tests: CouponService

Tests for services/coupon.py covering:
- compute_discount() for percentage and fixed coupons, caps and clamping
- validate() rules: inactive, expired, usage limit, minimum order
- apply() results and the cart coupon it sets
- remove() idempotence and ensure_coupon() creation semantics
"""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, patch

from enums.coupon_rejection import CouponRejection
from enums.coupon_type import CouponType
from exceptions import DocumentStoreException
from models.coupon import CouponDTO
from services.coupon import CouponService


class FakeCart:
    """Minimal coupon target with a fixed subtotal."""

    def __init__(self, subtotal: int):
        self.subtotal = subtotal
        self.coupon = None
        self.set_calls = 0

    async def set_coupon(self, coupon):
        self.coupon = coupon
        self.set_calls += 1


def make_coupon(**overrides) -> CouponDTO:
    data = {"code": "SAVE20", "type": CouponType.PERCENTAGE, "value": 20, "is_active": True}
    data.update(overrides)
    return CouponDTO(**data)


@pytest.fixture
def coupon_service(document_store):
    return CouponService(document_store)


class TestComputeDiscount:

    def test_percentage_capped_by_max_discount(self):
        coupon = make_coupon(value=20, max_discount=150)

        discount = CouponService.compute_discount(coupon, 1000)

        assert discount == 150
        assert CouponService.compute_total(1000, discount) == 850

    def test_percentage_without_cap(self):
        assert CouponService.compute_discount(make_coupon(value=10), 1000) == 100

    def test_zero_max_discount_means_no_cap(self):
        assert CouponService.compute_discount(make_coupon(value=10, max_discount=0), 1000) == 100

    def test_fixed_amount_clamped_to_subtotal(self):
        coupon = make_coupon(code="FLAT100", type=CouponType.FIXED_AMOUNT, value=100)

        discount = CouponService.compute_discount(coupon, 50)

        assert discount == 50
        assert CouponService.compute_total(50, discount) == 0

    def test_below_min_order_value_gets_nothing(self):
        assert CouponService.compute_discount(make_coupon(min_order_value=500), 499) == 0

    def test_no_coupon_or_empty_cart(self):
        assert CouponService.compute_discount(None, 1000) == 0
        assert CouponService.compute_discount(make_coupon(), 0) == 0

    @pytest.mark.parametrize("coupon_type,value,subtotal", [
        (CouponType.PERCENTAGE, 150, 200),
        (CouponType.FIXED_AMOUNT, 1000, 1),
        (CouponType.FIXED_AMOUNT, 0, 300),
        (CouponType.PERCENTAGE, 33, 7),
    ])
    def test_total_never_negative(self, coupon_type, value, subtotal):
        coupon = make_coupon(type=coupon_type, value=value)
        discount = CouponService.compute_discount(coupon, subtotal)

        assert 0 <= discount <= subtotal
        assert CouponService.compute_total(subtotal, discount) >= 0


class TestValidate:

    def test_active_coupon_passes(self):
        assert CouponService.validate(make_coupon(), 1000) is None

    def test_inactive(self):
        assert CouponService.validate(make_coupon(is_active=False), 1000) == CouponRejection.INACTIVE

    def test_expired(self):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        assert CouponService.validate(make_coupon(expiry_date=yesterday), 1000) == CouponRejection.EXPIRED

    def test_naive_expiry_is_treated_as_utc(self):
        coupon = make_coupon(expiry_date=datetime(2030, 1, 1))
        now = datetime(2030, 1, 2, tzinfo=timezone.utc)

        assert CouponService.validate(coupon, 1000, now=now) == CouponRejection.EXPIRED

    def test_usage_limit_reached(self):
        coupon = make_coupon(usage_limit=10, used_count=10)
        assert CouponService.validate(coupon, 1000) == CouponRejection.USAGE_LIMIT_REACHED

    def test_zero_usage_limit_is_unlimited(self):
        assert CouponService.validate(make_coupon(usage_limit=0, used_count=500), 1000) is None

    def test_below_minimum_order(self):
        coupon = make_coupon(min_order_value=2000)
        assert CouponService.validate(coupon, 1000) == CouponRejection.BELOW_MINIMUM_ORDER


class TestApply:

    @pytest.mark.asyncio
    async def test_unknown_code(self, coupon_service):
        cart = FakeCart(1000)

        result = await coupon_service.apply("nope", cart)

        assert result.success is False
        assert result.reason == CouponRejection.NOT_FOUND
        assert result.message == "Invalid Coupon Code"
        assert cart.set_calls == 0

    @pytest.mark.asyncio
    async def test_inactive_code_reports_expired(self, coupon_service, document_store):
        await document_store.set("coupons/OLD", {"code": "OLD", "type": "percentage", "value": 5, "isActive": False})

        result = await coupon_service.apply("OLD", FakeCart(1000))

        assert result.success is False
        assert result.message == "Coupon Expired"

    @pytest.mark.asyncio
    async def test_success_normalizes_code_and_sets_coupon(self, coupon_service, document_store):
        await document_store.set("coupons/SAVE20", {
            "type": "percentage", "value": 20, "maxDiscount": 150, "isActive": True,
        })
        cart = FakeCart(1000)

        result = await coupon_service.apply("  save20 ", cart)

        assert result.success is True
        assert result.message == "Code SAVE20 Applied!"
        assert cart.coupon.code == "SAVE20"
        assert cart.coupon.max_discount == 150

    @pytest.mark.asyncio
    async def test_lookup_error(self, coupon_service):
        error = DocumentStoreException("coupons/SAVE20", "unreachable")
        with patch.object(coupon_service.document_store, "get", AsyncMock(side_effect=error)):
            result = await coupon_service.apply("SAVE20", FakeCart(1000))

        assert result.success is False
        assert result.reason == CouponRejection.LOOKUP_FAILED
        assert result.message == "Error verifying code"

    @pytest.mark.asyncio
    async def test_malformed_record_is_a_lookup_failure(self, coupon_service, document_store):
        await document_store.set("coupons/BROKEN", {"type": "mystery", "value": "lots", "isActive": True})

        result = await coupon_service.apply("BROKEN", FakeCart(1000))

        assert result.reason == CouponRejection.LOOKUP_FAILED

    @pytest.mark.asyncio
    async def test_empty_code(self, coupon_service):
        result = await coupon_service.apply("   ", FakeCart(1000))

        assert result.reason == CouponRejection.NOT_FOUND


class TestRemoveAndEnsure:

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self):
        cart = FakeCart(1000)
        cart.coupon = make_coupon()

        await CouponService.remove(cart)
        await CouponService.remove(cart)

        assert cart.coupon is None

    @pytest.mark.asyncio
    async def test_ensure_coupon_creates_once(self, coupon_service, document_store):
        coupon = make_coupon(code="COMEBACK5", value=5)

        assert await coupon_service.ensure_coupon(coupon) is True
        assert await coupon_service.ensure_coupon(make_coupon(code="COMEBACK5", value=50)) is False

        stored = await document_store.get("coupons/COMEBACK5")
        assert stored["value"] == 5
        assert stored["isActive"] is True
