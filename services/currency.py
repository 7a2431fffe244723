import logging

import aiohttp

import config
from enums.currency import Currency
from exceptions import UnsupportedCurrencyException
from services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

CURRENCY_STORAGE_KEY = "htk-currency"

# ISO 3166 country code -> display currency used by detect()
COUNTRY_TO_CURRENCY: dict[str, Currency] = {
    "IN": Currency.INR,
    "US": Currency.USD,
    "GB": Currency.GBP,
    "AE": Currency.AED,
    "SA": Currency.AED,
    "QA": Currency.AED,
    "KW": Currency.AED,
    "BH": Currency.AED,
    "OM": Currency.AED,
    **{country: Currency.EUR for country in (
        "AT", "BE", "CY", "DE", "EE", "ES", "FI", "FR", "GR", "HR",
        "IE", "IT", "LT", "LU", "LV", "MT", "NL", "PT", "SI", "SK",
    )},
}


def _group_indian(digits: str) -> str:
    """
    Indian digit grouping: last three digits, then pairs.

    Examples:
        1000 → 1,000
        100000 → 1,00,000
        12345678 → 1,23,45,678
    """
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


class CurrencyService:
    """
    Display currency for one storefront session.

    Prices are kept in INR everywhere; conversion happens only when a price is
    shown. Detection is best effort and never raises.
    """

    def __init__(self, local_storage: LocalStorage, default: Currency | None = None):
        self.local_storage = local_storage
        self.default = default or config.DEFAULT_CURRENCY
        self.currency = self.default
        self.is_detecting = False

    @staticmethod
    def available_currencies() -> list[Currency]:
        return list(Currency)

    @staticmethod
    def convert(amount_base: float, currency: Currency) -> float:
        return round(amount_base * currency.get_rate(), 2)

    @staticmethod
    def format_amount(amount: float, currency: Currency) -> str:
        """
        Format an amount that is already in the display currency.

        INR: Indian grouping, decimals only when non-zero (₹1,00,000 / ₹99.5).
        Everything else: en-US grouping with exactly two decimals ($1,200.00).
        """
        sign = "-" if amount < 0 else ""
        amount = abs(amount)
        if currency == Currency.INR:
            text = f"{amount:.2f}".rstrip("0").rstrip(".")
            integer, _, fraction = text.partition(".")
            body = _group_indian(integer) + (f".{fraction}" if fraction else "")
        else:
            body = f"{amount:,.2f}"
        return f"{sign}{currency.get_symbol()}{body}"

    @staticmethod
    def format(amount_base: float, currency: Currency) -> str:
        """Convert an INR amount and format it in the given currency."""
        return CurrencyService.format_amount(CurrencyService.convert(amount_base, currency), currency)

    def convert_price(self, amount_base: float) -> float:
        return CurrencyService.convert(amount_base, self.currency)

    def format_price(self, amount_base: float) -> str:
        return CurrencyService.format(amount_base, self.currency)

    async def set_currency(self, code: str | Currency) -> Currency:
        """
        Switch the display currency and persist the choice.

        Raises:
            UnsupportedCurrencyException: code is not in the rate table
        """
        currency = code if isinstance(code, Currency) else Currency.from_string(code)
        if currency is None:
            raise UnsupportedCurrencyException(str(code))
        self.currency = currency
        await self.local_storage.set(CURRENCY_STORAGE_KEY, currency.value)
        logger.info(f"Display currency set to {currency.value}")
        return currency

    async def detect(self) -> Currency:
        """
        Pick the session currency.

        A stored preference wins. Otherwise one IP geolocation lookup is made;
        whatever goes wrong there leaves the default currency in place.
        """
        stored = Currency.from_string(await self.local_storage.get(CURRENCY_STORAGE_KEY))
        if stored is not None:
            self.currency = stored
            return stored

        self.is_detecting = True
        try:
            country_code = await self._fetch_country_code()
        except Exception as e:
            logger.warning(f"Currency detection failed, using {self.default.value}: {e}")
            country_code = None
        finally:
            self.is_detecting = False

        detected = COUNTRY_TO_CURRENCY.get((country_code or "").upper())
        if detected is None:
            self.currency = self.default
            return self.currency

        self.currency = detected
        await self.local_storage.set(CURRENCY_STORAGE_KEY, detected.value)
        logger.info(f"Detected display currency {detected.value} for country {country_code}")
        return detected

    async def _fetch_country_code(self) -> str | None:
        timeout = aiohttp.ClientTimeout(total=config.CURRENCY_DETECT_TIMEOUT_SECONDS)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(config.CURRENCY_DETECT_URL) as response:
                response.raise_for_status()
                payload = await response.json(content_type=None)
        return payload.get("country_code") if isinstance(payload, dict) else None
