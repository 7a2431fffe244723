from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from enums.coupon_rejection import CouponRejection
from enums.coupon_type import CouponType


class CouponDTO(BaseModel):
    """
    Coupon record stored at coupons/{CODE}.

    Stored documents use camelCase keys (minOrderValue, isActive, ...);
    attributes are snake_case and populated through aliases.
    """
    model_config = ConfigDict(populate_by_name=True)

    code: str
    type: CouponType
    value: float = Field(ge=0)
    min_order_value: float = Field(0, alias="minOrderValue")
    max_discount: float | None = Field(None, alias="maxDiscount")  # Percentage coupons only
    expiry_date: datetime | None = Field(None, alias="expiryDate")
    usage_limit: int = Field(0, alias="usageLimit")  # 0 = unlimited
    used_count: int = Field(0, alias="usedCount")
    is_active: bool = Field(False, alias="isActive")

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry_date is None:
            return False
        now = now or datetime.now(timezone.utc)
        expiry = self.expiry_date
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return now >= expiry

    def is_usage_exhausted(self) -> bool:
        return self.usage_limit > 0 and self.used_count >= self.usage_limit

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CouponApplyResultDTO(BaseModel):
    success: bool
    message: str
    reason: CouponRejection | None = None
    coupon: CouponDTO | None = None
