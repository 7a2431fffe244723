"""
Cart Store

Line items plus an optional coupon, persisted in one of two places:

- anonymous: local storage keys "cart" (JSON list of lines) and "coupon",
  written immediately on every change
- authenticated: remote document users/{uid}/cart/main, written through a
  debounced WriteCoalescer and watched for live updates from other sessions

The backend is an explicit tagged value switched only by transition(), which
is driven by identity changes:

    anonymous --login--> authenticated   (local cart discarded or merged, see CartMigrationPolicy)
    authenticated --logout--> anonymous  (pending write flushed, local cart re-read)

Remote snapshots replace the in-memory cart (last write wins). A snapshot that
arrives while a local change is still queued is skipped; the queued write
supersedes it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable

from pydantic import ValidationError

import config
from enums.cart_migration_policy import CartMigrationPolicy
from enums.cart_mode import CartMode
from exceptions import InvalidCartItemException
from models.cart import CartItemDTO, CartDocumentDTO
from models.coupon import CouponDTO, CouponApplyResultDTO
from models.product import ProductDTO
from services.coupon import CouponService
from services.document_store import DocumentStore
from services.local_storage import LocalStorage
from utils.write_coalescer import WriteCoalescer

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "cart"
COUPON_STORAGE_KEY = "coupon"


@dataclass
class AnonymousBackend:
    storage: LocalStorage


@dataclass
class AuthenticatedBackend:
    uid: str
    coalescer: WriteCoalescer
    unsubscribe: Callable[[], None] = field(default=lambda: None)


CartBackend = AnonymousBackend | AuthenticatedBackend


class CartStore:

    def __init__(self,
                 local_storage: LocalStorage,
                 document_store: DocumentStore,
                 coupon_service: CouponService,
                 migration_policy: CartMigrationPolicy | None = None,
                 debounce_seconds: float | None = None,
                 max_delay_seconds: float | None = None,
                 max_retries: int | None = None,
                 retry_delay_base: float | None = None):
        self.local_storage = local_storage
        self.document_store = document_store
        self.coupon_service = coupon_service
        self.migration_policy = migration_policy or config.CART_LOGIN_MIGRATION
        self.debounce_seconds = debounce_seconds or config.CART_SYNC_DEBOUNCE_MS / 1000
        self.max_delay_seconds = max_delay_seconds or config.CART_SYNC_MAX_DELAY_MS / 1000
        self.max_retries = config.CART_SYNC_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay_base = retry_delay_base or config.CART_SYNC_RETRY_DELAY_BASE

        self.items: list[CartItemDTO] = []
        self.coupon: CouponDTO | None = None
        self.cart_open = False
        self.backend: CartBackend = AnonymousBackend(local_storage)
        self._transition_lock = asyncio.Lock()
        self._change_listeners: list[Callable[[], None]] = []

    @staticmethod
    def cart_path(uid: str) -> str:
        return f"users/{uid}/cart/main"

    @property
    def mode(self) -> CartMode:
        match self.backend:
            case AuthenticatedBackend():
                return CartMode.AUTHENTICATED
            case _:
                return CartMode.ANONYMOUS

    @property
    def uid(self) -> str | None:
        return self.backend.uid if isinstance(self.backend, AuthenticatedBackend) else None

    @property
    def subtotal(self) -> int:
        return sum(item.line_total for item in self.items)

    @property
    def discount(self) -> float:
        return CouponService.compute_discount(self.coupon, self.subtotal)

    @property
    def total(self) -> float:
        return CouponService.compute_total(self.subtotal, self.discount)

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    def get_item(self, product_id: str) -> CartItemDTO | None:
        return next((item for item in self.items if item.id == product_id), None)

    def on_change(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run after every change to the cart lines,
        local or remote.

        Returns:
            Callable that removes the callback
        """
        self._change_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._change_listeners:
                self._change_listeners.remove(callback)

        return unsubscribe

    def _notify_change(self) -> None:
        for callback in list(self._change_listeners):
            try:
                callback()
            except Exception as e:
                logger.exception(f"Cart change listener {getattr(callback, '__qualname__', callback)} failed: {e}")

    async def hydrate(self) -> None:
        """Load the anonymous cart from local storage."""
        if not isinstance(self.backend, AnonymousBackend):
            return
        self.items = CartStore._parse_items(await self.local_storage.get_json(CART_STORAGE_KEY, []))
        self.coupon = CartStore._parse_coupon(await self.local_storage.get_json(COUPON_STORAGE_KEY))
        logger.debug(f"Hydrated anonymous cart with {len(self.items)} lines")

    async def transition(self, uid: str | None) -> None:
        """
        Switch persistence backend for an identity change.

        Calling it with the identity the cart already follows is a no-op.
        """
        async with self._transition_lock:
            current = self.backend
            match current:
                case AuthenticatedBackend(uid=current_uid) if current_uid == uid:
                    return
                case AnonymousBackend() if uid is None:
                    return

            anonymous_items, anonymous_coupon = [], None
            match current:
                case AuthenticatedBackend():
                    await current.coalescer.close()
                    current.unsubscribe()
                case AnonymousBackend():
                    anonymous_items, anonymous_coupon = self.items, self.coupon

            self.items = []
            self.coupon = None

            if uid is None:
                self.backend = AnonymousBackend(self.local_storage)
                await self.hydrate()
                logger.info("Cart switched to anonymous mode")
                return

            await self._enter_authenticated(uid, anonymous_items, anonymous_coupon)

    async def _enter_authenticated(self, uid: str, anonymous_items: list[CartItemDTO],
                                   anonymous_coupon: CouponDTO | None) -> None:
        await self.local_storage.remove(CART_STORAGE_KEY)
        await self.local_storage.remove(COUPON_STORAGE_KEY)

        coalescer = WriteCoalescer(partial(self._write_remote, uid),
                                   delay=self.debounce_seconds,
                                   max_delay=self.max_delay_seconds,
                                   max_retries=self.max_retries,
                                   retry_delay_base=self.retry_delay_base,
                                   name=f"cart:{uid}")
        backend = AuthenticatedBackend(uid=uid, coalescer=coalescer)
        self.backend = backend
        backend.unsubscribe = await self.document_store.subscribe(CartStore.cart_path(uid),
                                                                  partial(self._on_remote_snapshot, backend))

        if self.migration_policy == CartMigrationPolicy.MERGE and anonymous_items:
            self.items = CartStore.merge_items(self.items, anonymous_items)
            self.coupon = self.coupon or anonymous_coupon
            coalescer.submit(self._to_document())
            await coalescer.flush()
            logger.info(f"Merged {len(anonymous_items)} anonymous cart lines into cart of user {uid}")
        elif anonymous_items:
            logger.info(f"Discarded {len(anonymous_items)} anonymous cart lines on login of user {uid}")

        logger.info(f"Cart switched to authenticated mode for user {uid}")

    @staticmethod
    def merge_items(base: list[CartItemDTO], incoming: list[CartItemDTO]) -> list[CartItemDTO]:
        """Union by product id; quantities of shared ids are summed, base order first."""
        merged = {item.id: item for item in base}
        for item in incoming:
            existing = merged.get(item.id)
            if existing is None:
                merged[item.id] = item
            else:
                merged[item.id] = existing.model_copy(update={"quantity": existing.quantity + item.quantity})
        return list(merged.values())

    async def add_to_cart(self, product: ProductDTO | dict[str, Any]) -> CartItemDTO:
        """
        Add one unit of a product and open the cart drawer.

        An id already in the cart only gets its quantity raised; the price
        stays the one captured when the line was created.

        Raises:
            InvalidCartItemException: product lacks an id, name or integer price
        """
        incoming = CartStore._to_cart_item(product)
        line = incoming
        for index, item in enumerate(self.items):
            if item.id == incoming.id:
                line = item.model_copy(update={"quantity": item.quantity + 1})
                self.items[index] = line
                break
        else:
            self.items.append(incoming)
        self.cart_open = True
        await self._persist()
        self._notify_change()
        return line

    async def remove_from_cart(self, product_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != product_id]
        await self._persist()
        self._notify_change()
        return len(self.items) != before

    async def update_quantity(self, product_id: str, delta: int) -> CartItemDTO | None:
        """Change a line's quantity by delta, never below 1. Unknown ids are ignored."""
        for index, item in enumerate(self.items):
            if item.id == product_id:
                line = item.model_copy(update={"quantity": max(1, item.quantity + delta)})
                self.items[index] = line
                await self._persist()
                self._notify_change()
                return line
        return None

    async def clear(self) -> None:
        self.items = []
        self.coupon = None
        await self.local_storage.remove(CART_STORAGE_KEY)
        await self.local_storage.remove(COUPON_STORAGE_KEY)
        if isinstance(self.backend, AuthenticatedBackend):
            self.backend.coalescer.submit(self._to_document())
        self._notify_change()

    async def apply_coupon(self, code: str) -> CouponApplyResultDTO:
        return await self.coupon_service.apply(code, self)

    async def remove_coupon(self) -> None:
        await self.coupon_service.remove(self)

    async def set_coupon(self, coupon: CouponDTO | None) -> None:
        self.coupon = coupon
        await self._persist()

    def set_cart_open(self, is_open: bool) -> None:
        self.cart_open = is_open

    async def flush(self) -> None:
        """Write any queued remote change now."""
        if isinstance(self.backend, AuthenticatedBackend):
            await self.backend.coalescer.flush()

    async def close(self) -> None:
        if isinstance(self.backend, AuthenticatedBackend):
            await self.backend.coalescer.close()
            self.backend.unsubscribe()

    async def _persist(self) -> None:
        match self.backend:
            case AnonymousBackend(storage=storage):
                await storage.set_json(CART_STORAGE_KEY, [item.model_dump() for item in self.items])
                if self.coupon is not None:
                    await storage.set_json(COUPON_STORAGE_KEY, self.coupon.to_document())
                else:
                    await storage.remove(COUPON_STORAGE_KEY)
            case AuthenticatedBackend(coalescer=coalescer):
                coalescer.submit(self._to_document())

    def _to_document(self) -> dict[str, Any]:
        return CartDocumentDTO(items=self.items, coupon=self.coupon).to_document()

    async def _write_remote(self, uid: str, document: dict[str, Any]) -> None:
        # Failures propagate to the coalescer, which retries and logs them
        await self.document_store.set(CartStore.cart_path(uid), document, merge=True)

    async def _on_remote_snapshot(self, backend: AuthenticatedBackend, data: dict[str, Any] | None) -> None:
        if self.backend is not backend or data is None:
            return
        if backend.coalescer.has_pending:
            logger.debug(f"Skipping remote cart snapshot for user {backend.uid}, local change queued")
            return
        self.items = CartStore._parse_items(data.get("items", []))
        if "coupon" in data:
            self.coupon = CartStore._parse_coupon(data["coupon"])
        self._notify_change()

    @staticmethod
    def _to_cart_item(product: ProductDTO | dict[str, Any]) -> CartItemDTO:
        if isinstance(product, ProductDTO):
            data = product.model_dump()
        elif isinstance(product, dict):
            data = product
        else:
            raise InvalidCartItemException(f"unsupported product type {type(product).__name__}")
        if data.get("id") in (None, ""):
            raise InvalidCartItemException("product has no id")
        try:
            return CartItemDTO(id=str(data["id"]),
                               name=data.get("name", ""),
                               price=data.get("price"),
                               image=data.get("image") or "",
                               quantity=1)
        except ValidationError as e:
            raise InvalidCartItemException(str(e)) from e

    @staticmethod
    def _parse_items(raw: Any) -> list[CartItemDTO]:
        if not isinstance(raw, list):
            logger.warning(f"Ignoring cart payload of type {type(raw).__name__}")
            return []
        items: dict[str, CartItemDTO] = {}
        for entry in raw:
            try:
                item = CartItemDTO.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Dropping invalid cart line {entry!r}: {e}")
                continue
            if item.id in items:
                logger.warning(f"Dropping duplicate cart line for product {item.id}")
                continue
            items[item.id] = item
        return list(items.values())

    @staticmethod
    def _parse_coupon(raw: Any) -> CouponDTO | None:
        if not raw:
            return None
        try:
            return CouponDTO.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Dropping invalid stored coupon: {e}")
            return None
