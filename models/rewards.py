from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from enums.reward_tier import RewardTier


class PointTransactionDTO(BaseModel):
    """One ledger entry; points > 0 earned, points < 0 redeemed."""
    date: datetime
    description: str
    points: int
    balance: int  # Balance after this transaction


class RewardsAccountDTO(BaseModel):
    """
    Rewards document stored at users/{uid}/rewards/main.

    tier is denormalized for readers of the raw document; the ledger always
    rewrites it from points and never reads it back as a source of truth.
    """
    model_config = ConfigDict(populate_by_name=True)

    points: int = Field(0, ge=0)
    tier: RewardTier = RewardTier.BRONZE
    history: list[PointTransactionDTO] = []
    created_at: datetime | None = Field(None, alias="createdAt")

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RedemptionResultDTO(BaseModel):
    success: bool
    message: str
    points_redeemed: int = 0
    discount: int = 0  # INR
    balance: int = 0
