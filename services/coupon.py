import logging
from datetime import datetime
from typing import Protocol

from pydantic import ValidationError

from enums.coupon_rejection import CouponRejection
from enums.coupon_type import CouponType
from exceptions import ConcurrentModificationException, DocumentStoreException, InvalidCouponDataException
from models.coupon import CouponDTO, CouponApplyResultDTO
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class CouponTarget(Protocol):
    """What the evaluator needs from a cart."""

    @property
    def subtotal(self) -> int: ...

    async def set_coupon(self, coupon: CouponDTO | None) -> None: ...


class CouponService:
    """
    Coupon lookup and discount rules.

    Discount math is pure and static; only lookup and ensure_coupon touch the
    document store.
    """

    def __init__(self, document_store: DocumentStore):
        self.document_store = document_store

    @staticmethod
    def normalize_code(code: str | None) -> str:
        return (code or "").strip().upper()

    @staticmethod
    def coupon_path(code: str) -> str:
        return f"coupons/{CouponService.normalize_code(code)}"

    async def lookup(self, code: str) -> CouponDTO | None:
        """
        Read a coupon record.

        Returns:
            CouponDTO, or None when no record exists for the code

        Raises:
            DocumentStoreException: the store could not be read
            InvalidCouponDataException: the stored record is malformed
        """
        code = CouponService.normalize_code(code)
        if not code:
            return None
        data = await self.document_store.get(CouponService.coupon_path(code))
        if data is None:
            return None
        data.setdefault("code", code)
        try:
            return CouponDTO.model_validate(data)
        except ValidationError as e:
            raise InvalidCouponDataException(code, str(e)) from e

    @staticmethod
    def validate(coupon: CouponDTO, subtotal: float, now: datetime | None = None) -> CouponRejection | None:
        """Return the first rule the coupon fails for this subtotal, None if it applies."""
        if not coupon.is_active:
            return CouponRejection.INACTIVE
        if coupon.is_expired(now):
            return CouponRejection.EXPIRED
        if coupon.is_usage_exhausted():
            return CouponRejection.USAGE_LIMIT_REACHED
        if subtotal < coupon.min_order_value:
            return CouponRejection.BELOW_MINIMUM_ORDER
        return None

    @staticmethod
    def compute_discount(coupon: CouponDTO | None, subtotal: float) -> float:
        """
        Discount for a subtotal, clamped to [0, subtotal].

        Percentage coupons are capped by max_discount when it is set (0 means
        no cap). A subtotal below min_order_value gets no discount.
        """
        if coupon is None or subtotal <= 0:
            return 0
        if subtotal < coupon.min_order_value:
            return 0

        if coupon.type == CouponType.PERCENTAGE:
            discount = subtotal * coupon.value / 100
            if coupon.max_discount and discount > coupon.max_discount:
                discount = coupon.max_discount
        else:
            discount = coupon.value

        return round(min(max(discount, 0), subtotal), 2)

    @staticmethod
    def compute_total(subtotal: float, discount: float) -> float:
        return max(0, subtotal - discount)

    async def apply(self, code: str, cart: CouponTarget) -> CouponApplyResultDTO:
        """
        Validate a code against the cart and attach the coupon on success.

        Never raises for business outcomes; the reason field says why a code
        was rejected.
        """
        normalized = CouponService.normalize_code(code)
        if not normalized:
            return CouponService._rejected(CouponRejection.NOT_FOUND)

        try:
            coupon = await self.lookup(normalized)
        except (DocumentStoreException, InvalidCouponDataException) as e:
            logger.error(f"Coupon lookup failed for {normalized}: {e}")
            return CouponService._rejected(CouponRejection.LOOKUP_FAILED)

        if coupon is None:
            logger.info(f"Coupon {normalized} not found")
            return CouponService._rejected(CouponRejection.NOT_FOUND)

        rejection = CouponService.validate(coupon, cart.subtotal)
        if rejection is not None:
            logger.info(f"Coupon {normalized} rejected: {rejection.value}")
            return CouponService._rejected(rejection)

        await cart.set_coupon(coupon)
        logger.info(f"Coupon {normalized} applied")
        return CouponApplyResultDTO(success=True, message=f"Code {normalized} Applied!", coupon=coupon)

    @staticmethod
    async def remove(cart: CouponTarget) -> None:
        await cart.set_coupon(None)

    async def ensure_coupon(self, coupon: CouponDTO) -> bool:
        """
        Create a coupon record unless one already exists.

        Returns:
            True if the record was created, False if it was already there
        """
        try:
            await self.document_store.compare_and_set(CouponService.coupon_path(coupon.code),
                                                      coupon.to_document(), expected_version=0)
        except ConcurrentModificationException:
            return False
        logger.info(f"Coupon {coupon.code} created")
        return True

    @staticmethod
    def _rejected(reason: CouponRejection) -> CouponApplyResultDTO:
        return CouponApplyResultDTO(success=False, message=reason.get_message(), reason=reason)
