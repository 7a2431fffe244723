import logging

from models.product import ProductDTO

logger = logging.getLogger(__name__)

MAX_COMPARE_ITEMS = 3


class CompareStore:
    """Side-by-side comparison list, session only."""

    def __init__(self, max_items: int = MAX_COMPARE_ITEMS):
        self.max_items = max_items
        self.items: list[ProductDTO] = []

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def is_full(self) -> bool:
        return len(self.items) >= self.max_items

    def is_in_compare(self, product_id: str) -> bool:
        return any(item.id == product_id for item in self.items)

    def add(self, product: ProductDTO) -> bool:
        if self.is_in_compare(product.id):
            return False
        if self.is_full:
            logger.info(f"Compare list full ({self.max_items}), {product.id} not added")
            return False
        self.items.append(product)
        return True

    def remove(self, product_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != product_id]
        return len(self.items) != before

    def clear(self) -> None:
        self.items = []
