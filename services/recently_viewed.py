from models.product import ProductDTO

MAX_RECENTLY_VIEWED = 10


class RecentlyViewedStore:
    """
    Most-recently-viewed products, newest first.

    One instance per storefront session; viewing a product again moves it to
    the front instead of adding a second entry.
    """

    def __init__(self, max_items: int = MAX_RECENTLY_VIEWED):
        self.max_items = max_items
        self._items: list[ProductDTO] = []

    def track(self, product: ProductDTO) -> None:
        self._items = [product, *(item for item in self._items if item.id != product.id)][:self.max_items]

    def snapshot(self, exclude_id: str | None = None) -> list[ProductDTO]:
        return [item for item in self._items if item.id != exclude_id]

    def clear(self) -> None:
        self._items = []
