import asyncio
import logging
import uuid
from datetime import datetime, timezone

import config
from enums.coupon_type import CouponType
from exceptions import DocumentStoreException
from models.coupon import CouponDTO
from services.cart import CartStore
from services.coupon import CouponService
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class AbandonedCartService:
    """
    Recovery prompt for carts left idle.

    After `timeout` seconds without activity, a non-empty cart triggers the
    prompt once per session. Triggering makes sure the recovery coupon exists
    and stores an abandoned_carts/{id} record; both run in the background and
    only log their failures.
    """

    def __init__(self, cart: CartStore, coupon_service: CouponService, document_store: DocumentStore,
                 timeout: float | None = None, coupon_code: str | None = None):
        self.cart = cart
        self.coupon_service = coupon_service
        self.document_store = document_store
        self.timeout = timeout or config.ABANDONED_CART_TIMEOUT_SECONDS
        self.coupon_code = coupon_code or config.ABANDONED_CART_COUPON_CODE

        self.has_shown = False
        self.is_visible = False
        self.record_id: str | None = None
        self._timer: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @staticmethod
    def record_path(record_id: str) -> str:
        return f"abandoned_carts/{record_id}"

    def recovery_coupon(self) -> CouponDTO:
        return CouponDTO(code=self.coupon_code,
                         type=CouponType.PERCENTAGE,
                         value=5,
                         min_order_value=0,
                         usage_limit=9999,
                         used_count=0,
                         is_active=True)

    def record_activity(self) -> None:
        """Restart the inactivity timer; does nothing once the prompt was shown or the cart is empty."""
        self._cancel_timer()
        if self.has_shown or not self.cart.items:
            return
        self._timer = asyncio.get_running_loop().create_task(self._wait_and_trigger())

    async def _wait_and_trigger(self) -> None:
        await asyncio.sleep(self.timeout)
        self._timer = None
        await self.trigger()

    async def trigger(self) -> bool:
        """
        Show the prompt now (inactivity or exit intent).

        Returns:
            True if the prompt was shown by this call
        """
        if self.has_shown or not self.cart.items:
            return False
        self.has_shown = True
        self.is_visible = True
        self._cancel_timer()
        logger.info(f"Abandoned cart prompt shown for user {self.cart.uid or 'guest'}")

        self._spawn(self._ensure_coupon())
        self._spawn(self._save_record(self._build_record()))
        return True

    def dismiss(self) -> None:
        self.is_visible = False

    async def complete_order(self) -> None:
        """Close the prompt, reopen the cart drawer and flag the stored record as recovered."""
        self.is_visible = False
        self.cart.set_cart_open(True)
        await self.mark_recovered()

    async def mark_recovered(self) -> None:
        if self.record_id is None:
            return
        try:
            await self.document_store.set(AbandonedCartService.record_path(self.record_id),
                                          {"recovered": True}, merge=True)
        except DocumentStoreException as e:
            logger.error(f"Failed to mark abandoned cart {self.record_id} as recovered: {e}")

    async def wait_for_background(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def close(self) -> None:
        self._cancel_timer()
        await self.wait_for_background()

    def _build_record(self) -> dict:
        return {
            "userId": self.cart.uid or "guest",
            "items": [item.model_dump() for item in self.cart.items],
            "total": self.cart.total,
            "couponCode": self.coupon_code,
            "triggeredAt": datetime.now(timezone.utc).isoformat(),
            "recovered": False,
        }

    async def _ensure_coupon(self) -> None:
        try:
            await self.coupon_service.ensure_coupon(self.recovery_coupon())
        except DocumentStoreException as e:
            logger.error(f"Failed to ensure coupon {self.coupon_code}: {e}")

    async def _save_record(self, record: dict) -> None:
        record_id = uuid.uuid4().hex
        try:
            await self.document_store.set(AbandonedCartService.record_path(record_id), record)
        except DocumentStoreException as e:
            logger.error(f"Failed to save abandoned cart: {e}")
            return
        self.record_id = record_id

    def _spawn(self, coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done() and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = None
