"""
Architecture Tests: Storefront lifecycle

Tests that Storefront binds its stores on start, forwards identity changes
to cart, rewards and wishlist, and releases everything on close.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from enums.cart_migration_policy import CartMigrationPolicy
from enums.cart_mode import CartMode
from enums.currency import Currency
from enums.language import Language
from exceptions import StoreNotBoundException
from services.currency import CurrencyService
from services.identity import IdentityProvider
from storefront import Storefront
from utils.error_handler import GENERIC_ERROR_MESSAGE


@pytest.fixture
def identity():
    return IdentityProvider()


@pytest.fixture
def make_storefront(redis_client, session_factory, identity):
    def _make(**kwargs) -> Storefront:
        options = dict(identity=identity,
                       session_factory=session_factory,
                       namespace="shopper",
                       migration_policy=CartMigrationPolicy.DISCARD,
                       detect_currency=False)
        options.update(kwargs)
        return Storefront(redis_client, **options)
    return _make


@pytest_asyncio.fixture
async def storefront(make_storefront):
    storefront = make_storefront()
    await storefront.start()
    yield storefront
    await storefront.close()


class TestStoreBinding:

    @pytest.mark.parametrize("store", ["cart", "rewards", "wishlist", "compare", "recently_viewed",
                                       "abandoned_cart", "currency", "coupons"])
    def test_stores_require_start(self, make_storefront, store):
        storefront = make_storefront()

        with pytest.raises(StoreNotBoundException):
            getattr(storefront, store)

    @pytest.mark.asyncio
    async def test_close_unbinds_stores(self, make_storefront):
        storefront = make_storefront()
        await storefront.start()

        await storefront.close()
        await storefront.close()

        assert storefront.is_started is False
        with pytest.raises(StoreNotBoundException):
            storefront.cart

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, storefront):
        cart = storefront.cart

        await storefront.start()

        assert storefront.cart is cart


class TestIdentityWiring:

    @pytest.mark.asyncio
    async def test_guest_session(self, storefront):
        assert storefront.cart.mode == CartMode.ANONYMOUS
        assert storefront.rewards.user_id is None
        assert storefront.wishlist.user_id is None

    @pytest.mark.asyncio
    async def test_signed_in_at_start(self, make_storefront, document_store):
        storefront = make_storefront(identity=IdentityProvider("u1"))
        await storefront.start()
        try:
            assert storefront.cart.mode == CartMode.AUTHENTICATED
            assert storefront.cart.uid == "u1"
            assert storefront.wishlist.user_id == "u1"
            assert (await document_store.get("users/u1/rewards/main"))["points"] == 0
        finally:
            await storefront.close()

    @pytest.mark.asyncio
    async def test_sign_in_and_out_are_forwarded(self, storefront, identity, make_product):
        await storefront.cart.add_to_cart(make_product("guest-line"))

        await identity.sign_in("u1")

        assert storefront.cart.mode == CartMode.AUTHENTICATED
        assert storefront.cart.items == []
        assert storefront.rewards.user_id == "u1"
        assert storefront.wishlist.user_id == "u1"

        await identity.sign_out()

        assert storefront.cart.mode == CartMode.ANONYMOUS
        assert storefront.cart.items == []
        assert storefront.rewards.user_id is None
        assert storefront.wishlist.user_id is None

    @pytest.mark.asyncio
    async def test_closed_storefront_stops_listening(self, make_storefront, identity):
        storefront = make_storefront()
        await storefront.start()
        await storefront.close()

        await identity.sign_in("u1")

        assert storefront.is_started is False


class TestCompleteOrder:

    @pytest.mark.asyncio
    async def test_awards_points_and_clears_cart(self, storefront, identity, make_product, document_store):
        await identity.sign_in("u1")
        await storefront.cart.add_to_cart(make_product("x", price=400))

        transaction = await storefront.complete_order("1042")
        await storefront.cart.flush()

        assert transaction.points == 40
        assert transaction.description == "Order #1042"
        assert storefront.rewards.points == 40
        assert storefront.cart.items == []
        assert (await document_store.get("users/u1/cart/main"))["items"] == []

    @pytest.mark.asyncio
    async def test_guest_order_earns_nothing(self, storefront, make_product):
        await storefront.cart.add_to_cart(make_product("x", price=400))

        assert await storefront.complete_order("1043") is None
        assert storefront.cart.count == 0


class TestAbandonedCartWiring:

    @pytest.mark.asyncio
    async def test_cart_changes_arm_the_inactivity_timer(self, storefront, make_product):
        storefront.abandoned_cart.timeout = 0.05

        await storefront.cart.add_to_cart(make_product("x"))
        await asyncio.sleep(0.1)
        await storefront.abandoned_cart.wait_for_background()

        assert storefront.abandoned_cart.has_shown is True
        assert storefront.abandoned_cart.is_visible is True

    @pytest.mark.asyncio
    async def test_emptied_cart_disarms_the_timer(self, storefront, make_product):
        storefront.abandoned_cart.timeout = 0.05

        await storefront.cart.add_to_cart(make_product("x"))
        await storefront.cart.remove_from_cart("x")
        await asyncio.sleep(0.1)

        assert storefront.abandoned_cart.has_shown is False


class TestAttempt:

    @pytest.mark.asyncio
    async def test_success_returns_result(self, storefront, make_product):
        line, error = await storefront.attempt(storefront.cart.add_to_cart(make_product("x")))

        assert error is None
        assert line.id == "x"

    @pytest.mark.asyncio
    async def test_storefront_errors_become_messages(self, storefront):
        line, error = await storefront.attempt(storefront.cart.add_to_cart({"id": "x", "name": "No price"}))
        assert line is None
        assert error == "This product cannot be added to the cart"

        _, error = await storefront.attempt(storefront.currency.set_currency("JPY"))
        assert error == "Currency JPY is not supported"

    @pytest.mark.asyncio
    async def test_unexpected_errors_get_generic_message(self, storefront):
        async def broken():
            raise RuntimeError("boom")

        result, error = await storefront.attempt(broken())

        assert result is None
        assert error == GENERIC_ERROR_MESSAGE


class TestPreferences:

    @pytest.mark.asyncio
    async def test_language_is_persisted(self, storefront, make_storefront):
        assert await storefront.set_language("hi") is True

        restored = make_storefront(identity=IdentityProvider())
        await restored.start()
        try:
            assert restored.language == Language.HI
        finally:
            await restored.close()

    @pytest.mark.asyncio
    async def test_unsupported_language_is_ignored(self, storefront):
        assert await storefront.set_language("fr") is False
        assert storefront.language == Language.EN

    @pytest.mark.asyncio
    async def test_currency_detected_on_start(self, make_storefront):
        storefront = make_storefront(detect_currency=True)

        with patch.object(CurrencyService, "_fetch_country_code", AsyncMock(return_value="GB")):
            await storefront.start()
        try:
            assert storefront.currency.currency == Currency.GBP
        finally:
            await storefront.close()
