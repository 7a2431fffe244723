"""
Storefront session.

Wires the stores of one shopper session together and follows the identity
provider: every sign-in or sign-out is forwarded to the cart, rewards and
wishlist stores in that order.

Usage:
    setup_logging()
    await create_db_and_tables()
    storefront = Storefront(create_redis())
    await storefront.start()
    await storefront.cart.add_to_cart(product)
    await storefront.identity.sign_in("uid-123")
    ...
    await storefront.close()
"""

import logging
from typing import Any, Awaitable

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import async_sessionmaker

import config
from enums.cart_migration_policy import CartMigrationPolicy
from enums.language import Language
from exceptions import StorefrontException, StoreNotBoundException
from models.rewards import PointTransactionDTO
from services.abandoned_cart import AbandonedCartService
from services.cart import CartStore
from services.compare import CompareStore
from services.coupon import CouponService
from services.currency import CurrencyService
from services.document_store import DocumentStore
from services.identity import IdentityProvider
from services.local_storage import LocalStorage
from services.recently_viewed import RecentlyViewedStore
from services.rewards import LoyaltyLedger
from services.wishlist import WishlistStore
from utils.error_handler import handle_service_error, handle_unexpected_error

logger = logging.getLogger(__name__)

LANGUAGE_STORAGE_KEY = "htk-language"


def create_redis() -> Redis:
    return Redis(host=config.REDIS_HOST,
                 port=config.REDIS_PORT,
                 password=config.REDIS_PASSWORD,
                 db=config.REDIS_DB)


class Storefront:

    def __init__(self,
                 redis: Redis,
                 identity: IdentityProvider | None = None,
                 session_factory: async_sessionmaker | None = None,
                 namespace: str | None = None,
                 migration_policy: CartMigrationPolicy | None = None,
                 detect_currency: bool = True):
        """
        Args:
            redis: Client backing local storage
            identity: Identity provider; a signed-out one is created if omitted
            session_factory: Session factory for the document store (defaults to db.session_maker)
            namespace: Local storage namespace of this session
            migration_policy: What happens to the anonymous cart on login
            detect_currency: Run IP-based currency detection on start
        """
        self.identity = identity or IdentityProvider()
        self.document_store = DocumentStore(session_factory)
        self.local_storage = LocalStorage(redis, namespace)
        self.migration_policy = migration_policy
        self.detect_currency = detect_currency
        self.language = Language.EN

        self._currency: CurrencyService | None = None
        self._coupons: CouponService | None = None
        self._cart: CartStore | None = None
        self._rewards: LoyaltyLedger | None = None
        self._wishlist: WishlistStore | None = None
        self._compare: CompareStore | None = None
        self._recently_viewed: RecentlyViewedStore | None = None
        self._abandoned_cart: AbandonedCartService | None = None
        self._unsubscribe_auth = None
        self._unsubscribe_cart = None

    @property
    def is_started(self) -> bool:
        return self._cart is not None

    @property
    def currency(self) -> CurrencyService:
        return Storefront._bound(self._currency, "currency")

    @property
    def coupons(self) -> CouponService:
        return Storefront._bound(self._coupons, "coupon")

    @property
    def cart(self) -> CartStore:
        return Storefront._bound(self._cart, "cart")

    @property
    def rewards(self) -> LoyaltyLedger:
        return Storefront._bound(self._rewards, "rewards")

    @property
    def wishlist(self) -> WishlistStore:
        return Storefront._bound(self._wishlist, "wishlist")

    @property
    def compare(self) -> CompareStore:
        return Storefront._bound(self._compare, "compare")

    @property
    def recently_viewed(self) -> RecentlyViewedStore:
        return Storefront._bound(self._recently_viewed, "recently viewed")

    @property
    def abandoned_cart(self) -> AbandonedCartService:
        return Storefront._bound(self._abandoned_cart, "abandoned cart")

    @staticmethod
    def _bound(store, name: str):
        if store is None:
            raise StoreNotBoundException(name)
        return store

    async def start(self) -> None:
        """Create the stores, restore local state and follow the current identity."""
        if self.is_started:
            return
        currency = CurrencyService(self.local_storage)
        coupons = CouponService(self.document_store)
        cart = CartStore(self.local_storage, self.document_store, coupons, self.migration_policy)
        rewards = LoyaltyLedger(self.document_store)
        wishlist = WishlistStore(self.document_store)

        await cart.hydrate()
        if self.detect_currency:
            await currency.detect()
        self.language = await self._load_language()

        self._currency = currency
        self._coupons = coupons
        self._cart = cart
        self._rewards = rewards
        self._wishlist = wishlist
        self._compare = CompareStore()
        self._recently_viewed = RecentlyViewedStore()
        self._abandoned_cart = AbandonedCartService(cart, coupons, self.document_store)
        # Every cart change restarts the abandoned-cart inactivity timer
        self._unsubscribe_cart = cart.on_change(self._abandoned_cart.record_activity)

        await self._on_auth_change(self.identity.current_uid)
        self._unsubscribe_auth = self.identity.on_auth_change(self._on_auth_change)
        self._abandoned_cart.record_activity()
        logger.info(f"Storefront started (user={self.identity.current_uid or 'guest'}, "
                    f"currency={currency.currency.value}, language={self.language.value})")

    async def close(self) -> None:
        """Flush pending writes, drop subscriptions and unbind every store."""
        if not self.is_started:
            return
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        if self._unsubscribe_cart is not None:
            self._unsubscribe_cart()
            self._unsubscribe_cart = None
        await self._abandoned_cart.close()
        await self._cart.close()
        self._rewards.close()
        self._wishlist.close()

        self._currency = None
        self._coupons = None
        self._cart = None
        self._rewards = None
        self._wishlist = None
        self._compare = None
        self._recently_viewed = None
        self._abandoned_cart = None
        logger.info("Storefront closed")

    async def _on_auth_change(self, uid: str | None) -> None:
        await self.cart.transition(uid)
        await self.rewards.on_identity_change(uid)
        await self.wishlist.on_identity_change(uid)

    async def complete_order(self, order_ref: str) -> PointTransactionDTO | None:
        """
        Settle the current cart after a successful checkout.

        Awards loyalty points for the cart total, marks a pending abandoned-cart
        record as recovered and empties the cart.
        """
        total = self.cart.total
        transaction = await self.rewards.award_for_order(total, order_ref)
        await self.abandoned_cart.mark_recovered()
        await self.cart.clear()
        logger.info(f"Order {order_ref} completed with total {total}")
        return transaction

    async def attempt(self, action: Awaitable[Any]) -> tuple[Any, str | None]:
        """
        Await a store call on behalf of the outer layer.

        Returns:
            (result, None) on success, (None, user-facing message) if the call raised

        Usage:
            line, error = await storefront.attempt(storefront.cart.add_to_cart(product))
        """
        try:
            return await action, None
        except StorefrontException as e:
            return None, handle_service_error(e)
        except Exception as e:
            return None, handle_unexpected_error(e)

    async def set_language(self, code: str) -> bool:
        try:
            language = Language(code)
        except ValueError:
            logger.warning(f"Ignoring unsupported language {code!r}")
            return False
        self.language = language
        await self.local_storage.set(LANGUAGE_STORAGE_KEY, language.value)
        return True

    async def _load_language(self) -> Language:
        stored = await self.local_storage.get(LANGUAGE_STORAGE_KEY)
        try:
            return Language(stored) if stored else Language.EN
        except ValueError:
            return Language.EN
