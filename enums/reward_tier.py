from enum import Enum


class RewardTier(str, Enum):
    """
    Loyalty brackets, ordered from lowest to highest.

    The tier is always derived from the points balance and never stored as
    an independent source of truth.
    """
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"

    def get_min_points(self) -> int:
        match self:
            case RewardTier.PLATINUM:
                return 2000
            case RewardTier.GOLD:
                return 1000
            case RewardTier.SILVER:
                return 500
            case RewardTier.BRONZE:
                return 0

    def get_discount_percent(self) -> int:
        match self:
            case RewardTier.PLATINUM:
                return 8
            case RewardTier.GOLD:
                return 5
            case RewardTier.SILVER:
                return 2
            case RewardTier.BRONZE:
                return 0

    def get_next_tier(self) -> 'RewardTier | None':
        tiers = list(RewardTier)
        index = tiers.index(self)
        return tiers[index + 1] if index + 1 < len(tiers) else None

    @classmethod
    def for_points(cls, points: int) -> 'RewardTier':
        for tier in reversed(list(cls)):
            if points >= tier.get_min_points():
                return tier
        return cls.BRONZE
