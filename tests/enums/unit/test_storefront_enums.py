"""
Unit Tests: Storefront enums

Tests for the behavior attached to enums/reward_tier.py, enums/currency.py
and enums/coupon_rejection.py.
"""

import pytest

from enums.coupon_rejection import CouponRejection
from enums.currency import Currency
from enums.reward_tier import RewardTier


class TestRewardTier:

    @pytest.mark.parametrize("points, expected", [
        (0, RewardTier.BRONZE),
        (499, RewardTier.BRONZE),
        (500, RewardTier.SILVER),
        (999, RewardTier.SILVER),
        (1000, RewardTier.GOLD),
        (1999, RewardTier.GOLD),
        (2000, RewardTier.PLATINUM),
        (10000, RewardTier.PLATINUM),
    ])
    def test_for_points(self, points, expected):
        assert RewardTier.for_points(points) == expected

    def test_discounts_grow_with_tier(self):
        assert [tier.get_discount_percent() for tier in RewardTier] == [0, 2, 5, 8]

    def test_next_tier(self):
        assert RewardTier.BRONZE.get_next_tier() == RewardTier.SILVER
        assert RewardTier.PLATINUM.get_next_tier() is None


class TestCurrency:

    def test_from_string_is_case_insensitive(self):
        assert Currency.from_string(" usd ") == Currency.USD

    @pytest.mark.parametrize("value", [None, "", "JPY"])
    def test_from_string_unknown(self, value):
        assert Currency.from_string(value) is None

    def test_rupee_is_the_base_currency(self):
        assert Currency.INR.get_rate() == 1.0
        assert Currency.INR.get_symbol() == "₹"

    def test_every_currency_has_display_data(self):
        for currency in Currency:
            assert currency.get_rate() > 0
            assert currency.get_symbol()
            assert currency.get_name()


class TestCouponRejection:

    def test_inactive_and_expired_share_a_message(self):
        assert CouponRejection.INACTIVE.get_message() == CouponRejection.EXPIRED.get_message() == "Coupon Expired"

    def test_unknown_code_message(self):
        assert CouponRejection.NOT_FOUND.get_message() == "Invalid Coupon Code"

    def test_every_rejection_has_a_message(self):
        assert all(rejection.get_message() for rejection in CouponRejection)
