from pydantic import BaseModel


class ProductDTO(BaseModel):
    """Catalog product as handed to the cart, wishlist and compare stores."""
    id: str
    name: str
    price: int
    mrp: int | None = None
    image: str = ""
    description: str | None = None
    weight: str | None = None
    tag: str | None = None
