from enum import Enum


class Currency(str, Enum):
    """
    Display currencies. Prices are stored in INR; rates convert INR to the
    display currency and are static.
    """
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    AED = "AED"

    def get_rate(self) -> float:
        match self:
            case Currency.INR:
                return 1.0
            case Currency.USD:
                return 0.012
            case Currency.EUR:
                return 0.011
            case Currency.GBP:
                return 0.0095
            case Currency.AED:
                return 0.044

    def get_symbol(self) -> str:
        match self:
            case Currency.INR:
                return "₹"
            case Currency.USD:
                return "$"
            case Currency.EUR:
                return "€"
            case Currency.GBP:
                return "£"
            case Currency.AED:
                return "د.إ"

    def get_name(self) -> str:
        match self:
            case Currency.INR:
                return "Indian Rupee"
            case Currency.USD:
                return "US Dollar"
            case Currency.EUR:
                return "Euro"
            case Currency.GBP:
                return "British Pound"
            case Currency.AED:
                return "UAE Dirham"

    @classmethod
    def from_string(cls, value: str | None) -> 'Currency | None':
        """Case-insensitive lookup, None for unknown codes."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None
