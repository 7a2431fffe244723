from enum import Enum


class CouponRejection(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    BELOW_MINIMUM_ORDER = "BELOW_MINIMUM_ORDER"
    LOOKUP_FAILED = "LOOKUP_FAILED"            # Remote store could not be read

    def get_message(self) -> str:
        match self:
            case CouponRejection.NOT_FOUND:
                return "Invalid Coupon Code"
            case CouponRejection.INACTIVE | CouponRejection.EXPIRED:
                return "Coupon Expired"
            case CouponRejection.USAGE_LIMIT_REACHED:
                return "Coupon usage limit reached"
            case CouponRejection.BELOW_MINIMUM_ORDER:
                return "Order total is below the coupon minimum"
            case CouponRejection.LOOKUP_FAILED:
                return "Error verifying code"
