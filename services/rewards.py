"""
Loyalty Ledger

Points balance and append-only history per user, stored at
users/{uid}/rewards/main.

Rules:
- 1 point per ₹10 spent (rupees_to_points)
- 100 points = ₹10 discount, redeemed in whole 100-point blocks
- minimum redemption 100 points
- tier is derived from the balance after every change:
  ≥2000 Platinum 8%, ≥1000 Gold 5%, ≥500 Silver 2%, otherwise Bronze 0%

Every balance change is a read-modify-write of the whole account guarded by a
compare-and-set on the document version and retried on conflict, so two
sessions crediting the same user never lose an update. Each history entry's
balance equals the running sum of points up to and including it.
"""

import logging
from datetime import datetime, timezone

from pydantic import ValidationError

import config
from enums.reward_tier import RewardTier
from exceptions import (
    ConcurrentModificationException,
    DocumentStoreException,
    InsufficientPointsException,
    LedgerInconsistencyException,
    RetryExhaustedException,
)
from models.rewards import PointTransactionDTO, RewardsAccountDTO, RedemptionResultDTO
from services.document_store import DocumentStore
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

POINTS_PER_BLOCK = 100
RUPEES_PER_BLOCK = 10
RUPEES_PER_POINT_EARNED = 10


def points_to_rupees(points: int) -> int:
    """Discount value of a points amount; partial 100-point blocks are worth nothing."""
    return max(0, points // POINTS_PER_BLOCK * RUPEES_PER_BLOCK)


def rupees_to_points(amount: float) -> int:
    """Points earned for an order amount in INR."""
    return max(0, int(amount // RUPEES_PER_POINT_EARNED))


class LoyaltyLedger:

    def __init__(self, document_store: DocumentStore,
                 min_redemption: int | None = None,
                 max_retries: int | None = None,
                 retry_delay_base: float | None = None):
        self.document_store = document_store
        self.min_redemption = min_redemption or config.REWARDS_MIN_REDEMPTION
        self.max_retries = config.REWARDS_CAS_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay_base = retry_delay_base or config.REWARDS_CAS_RETRY_DELAY_BASE

        self.user_id: str | None = None
        self.points = 0
        self.history: list[PointTransactionDTO] = []
        self.is_loading = False
        self._unsubscribe = None

    @property
    def tier(self) -> RewardTier:
        return RewardTier.for_points(self.points)

    @property
    def tier_discount(self) -> int:
        return self.tier.get_discount_percent()

    @staticmethod
    def rewards_path(uid: str) -> str:
        return f"users/{uid}/rewards/main"

    @staticmethod
    def points_value(points: int) -> int:
        return points_to_rupees(points)

    def can_redeem(self, points: int) -> bool:
        return bool(self.user_id) and self.points >= points and points >= self.min_redemption

    async def on_identity_change(self, uid: str | None) -> None:
        """Follow the signed-in user: drop the old subscription, load and watch the new account."""
        if uid == self.user_id:
            return
        self.close()
        self.user_id = uid
        self.points = 0
        self.history = []
        if uid is None:
            self.is_loading = False
            return

        self.is_loading = True

        async def on_change(data: dict | None) -> None:
            if self.user_id == uid:
                await self._on_snapshot(uid, data)

        self._unsubscribe = await self.document_store.subscribe(LoyaltyLedger.rewards_path(uid), on_change)
        # Snapshot may have failed; never stay "loading" forever
        self.is_loading = False

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_snapshot(self, uid: str, data: dict | None) -> None:
        if data is None:
            await self._initialize_account(uid)
            return
        try:
            account = RewardsAccountDTO.model_validate(data)
        except ValidationError as e:
            logger.error(f"Ignoring malformed rewards document for user {uid}: {e}")
            self.is_loading = False
            return
        try:
            LoyaltyLedger.verify_account(account, uid)
        except LedgerInconsistencyException as e:
            logger.warning(str(e))
        self.points = account.points
        self.history = list(account.history)
        self.is_loading = False

    async def _initialize_account(self, uid: str) -> None:
        account = RewardsAccountDTO(created_at=datetime.now(timezone.utc))
        try:
            await self.document_store.compare_and_set(LoyaltyLedger.rewards_path(uid),
                                                      account.to_document(), expected_version=0)
            logger.info(f"Rewards account created for user {uid}")
        except ConcurrentModificationException:
            logger.debug(f"Rewards account for user {uid} was created concurrently")
        except DocumentStoreException as e:
            logger.error(f"Could not create rewards account for user {uid}: {e}")
        self.is_loading = False

    async def add_points(self, amount: int, description: str) -> PointTransactionDTO | None:
        """
        Credit points to the signed-in user.

        Silently ignored without an identity or for a non-positive amount.
        Store failures are logged and leave the balance unchanged.
        A stored account whose history does not add up to its balance is
        never written to.

        Returns:
            The appended transaction, or None if nothing was written
        """
        if not self.user_id or amount <= 0:
            return None
        uid = self.user_id
        try:
            transaction = await self._commit(uid, amount, description)
        except (RetryExhaustedException, DocumentStoreException, LedgerInconsistencyException) as e:
            logger.error(f"Adding {amount} points for user {uid} failed: {e}")
            return None
        logger.info(f"User {uid} earned {amount} points ({description}), balance {transaction.balance}")
        return transaction

    async def award_for_order(self, order_total: float, order_ref: str) -> PointTransactionDTO | None:
        """Credit the points earned by a completed order."""
        earned = rupees_to_points(order_total)
        return await self.add_points(earned, f"Order #{order_ref}")

    async def redeem_points(self, points: int) -> RedemptionResultDTO:
        """
        Convert points into a one-off INR discount.

        Only whole 100-point blocks are taken; the remainder stays on the
        balance. The balance is re-checked against the stored account, so a
        redemption never drives it negative.
        """
        if not self.can_redeem(points):
            return RedemptionResultDTO(success=False, message=self._refusal_message(points), balance=self.points)

        uid = self.user_id
        redeemed = points // POINTS_PER_BLOCK * POINTS_PER_BLOCK
        discount = points_to_rupees(points)
        try:
            transaction = await self._commit(uid, -redeemed, f"Redeemed for ₹{discount} discount")
        except InsufficientPointsException as e:
            logger.warning(str(e))
            return RedemptionResultDTO(success=False, message="Insufficient points", balance=e.available)
        except (RetryExhaustedException, DocumentStoreException, LedgerInconsistencyException) as e:
            logger.error(f"Redeeming {redeemed} points for user {uid} failed: {e}")
            return RedemptionResultDTO(success=False, message="Could not redeem points, please try again",
                                       balance=self.points)

        logger.info(f"User {uid} redeemed {redeemed} points for ₹{discount}, balance {transaction.balance}")
        return RedemptionResultDTO(success=True,
                                   message=f"Redeemed {redeemed} points for ₹{discount} discount",
                                   points_redeemed=redeemed,
                                   discount=discount,
                                   balance=transaction.balance)

    def _refusal_message(self, points: int) -> str:
        if not self.user_id:
            return "Sign in to redeem points"
        if points < self.min_redemption:
            return f"Minimum redemption is {self.min_redemption} points"
        return "Insufficient points"

    async def _commit(self, uid: str, delta: int, description: str) -> PointTransactionDTO:
        path = LoyaltyLedger.rewards_path(uid)

        @TransactionManager.with_retry(max_retries=self.max_retries, delay_base=self.retry_delay_base)
        async def commit_transaction() -> PointTransactionDTO:
            data, version = await self.document_store.get_versioned(path)
            if data is None:
                account = RewardsAccountDTO(created_at=datetime.now(timezone.utc))
            else:
                try:
                    account = RewardsAccountDTO.model_validate(data)
                except ValidationError as e:
                    raise LedgerInconsistencyException(uid, f"malformed rewards document: {e}") from e
                LoyaltyLedger.verify_account(account, uid)

            balance = account.points + delta
            if balance < 0:
                raise InsufficientPointsException(uid, -delta, account.points)

            transaction = PointTransactionDTO(date=datetime.now(timezone.utc),
                                              description=description,
                                              points=delta,
                                              balance=balance)
            updated = RewardsAccountDTO(points=balance,
                                        tier=RewardTier.for_points(balance),
                                        history=[*account.history, transaction],
                                        created_at=account.created_at)
            await self.document_store.compare_and_set(path, updated.to_document(), version)
            return transaction

        return await commit_transaction()

    @staticmethod
    def verify_account(account: RewardsAccountDTO, user_id: str | None = None) -> None:
        """
        Check the ledger invariants of a stored account.

        Raises:
            LedgerInconsistencyException: a history balance is not the running sum,
                the balance disagrees with the last entry, or the tier is stale
        """
        running = 0
        for index, transaction in enumerate(account.history):
            running += transaction.points
            if transaction.balance != running:
                raise LedgerInconsistencyException(
                    user_id, f"entry {index} has balance {transaction.balance}, expected {running}")
        if account.points != running:
            raise LedgerInconsistencyException(
                user_id, f"balance {account.points} differs from history total {running}")
        expected_tier = RewardTier.for_points(account.points)
        if account.tier != expected_tier:
            raise LedgerInconsistencyException(
                user_id, f"tier {account.tier.value} stored for {account.points} points, expected {expected_tier.value}")
