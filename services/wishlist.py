import logging
from typing import Any

from pydantic import ValidationError

from exceptions import DocumentStoreException
from models.product import ProductDTO
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class WishlistStore:
    """
    Saved products of the current user.

    Signed-in users sync users/{uid}/wishlist/main on every change, without
    debouncing. Guests keep an in-memory list that is dropped on logout.
    """

    def __init__(self, document_store: DocumentStore):
        self.document_store = document_store
        self.user_id: str | None = None
        self.items: list[ProductDTO] = []
        self._unsubscribe = None

    @staticmethod
    def wishlist_path(uid: str) -> str:
        return f"users/{uid}/wishlist/main"

    @property
    def count(self) -> int:
        return len(self.items)

    def is_in_wishlist(self, product_id: str) -> bool:
        return any(item.id == product_id for item in self.items)

    async def on_identity_change(self, uid: str | None) -> None:
        if uid == self.user_id:
            return
        self.close()
        self.user_id = uid
        self.items = []
        if uid is None:
            return

        async def on_change(data: dict | None) -> None:
            if self.user_id == uid:
                self.items = WishlistStore._parse_items((data or {}).get("items", []))

        self._unsubscribe = await self.document_store.subscribe(WishlistStore.wishlist_path(uid), on_change)

    async def add(self, product: ProductDTO | dict[str, Any]) -> bool:
        """Add a product once; returns False for duplicates and invalid payloads."""
        try:
            item = ProductDTO.model_validate(product)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid wishlist product: {e}")
            return False
        if self.is_in_wishlist(item.id):
            return False
        self.items = [*self.items, item]
        await self._save()
        return True

    async def remove(self, product_id: str) -> bool:
        remaining = [item for item in self.items if item.id != product_id]
        if len(remaining) == len(self.items):
            return False
        self.items = remaining
        await self._save()
        return True

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _save(self) -> None:
        if not self.user_id:
            return
        document = {"items": [item.model_dump(exclude_none=True) for item in self.items]}
        try:
            await self.document_store.set(WishlistStore.wishlist_path(self.user_id), document, merge=True)
        except DocumentStoreException as e:
            logger.error(f"Wishlist sync for user {self.user_id} failed: {e}")

    @staticmethod
    def _parse_items(raw: Any) -> list[ProductDTO]:
        items = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                items.append(ProductDTO.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Dropping invalid wishlist entry {entry!r}: {e}")
        return items
