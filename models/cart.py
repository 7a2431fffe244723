# A cart holds one line per product id, in insertion order. Quantity never drops
# below 1 - deleting a line is an explicit removal, not a zero quantity.
#
# Anonymous carts live in local storage under the "cart" and "coupon" keys,
# authenticated carts in the remote document users/{uid}/cart/main.
from pydantic import BaseModel, Field

from models.coupon import CouponDTO


class CartItemDTO(BaseModel):
    id: str
    name: str
    price: int
    image: str = ""
    quantity: int = Field(1, ge=1)

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


class CartDocumentDTO(BaseModel):
    items: list[CartItemDTO] = []
    coupon: CouponDTO | None = None

    def to_document(self) -> dict:
        return {
            "items": [item.model_dump() for item in self.items],
            "coupon": self.coupon.to_document() if self.coupon else None,
        }
