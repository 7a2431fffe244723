import os
import sys

from dotenv import load_dotenv

from enums.cart_migration_policy import CartMigrationPolicy
from enums.currency import Currency
from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test setups to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)


def _config_error(name: str, reason, expected: str) -> None:
    print(f"\n ERROR: Invalid {name} configuration\n", file=sys.stderr)
    print(f"Reason: {reason}", file=sys.stderr)
    print(f"Expected: {expected}", file=sys.stderr)
    print(f"Current value: {os.environ.get(name, '(not set)')}\n", file=sys.stderr)
    sys.exit(1)


def _positive_int(name: str, default: str) -> int:
    try:
        value = int(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive (got: {value})")
        return value
    except ValueError as e:
        _config_error(name, e, "Positive integer")


def _positive_float(name: str, default: str) -> float:
    try:
        value = float(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive (got: {value})")
        return value
    except ValueError as e:
        _config_error(name, e, "Positive number (e.g., 0.5, 3)")


# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    _runtime_env_str = os.environ.get("RUNTIME_ENVIRONMENT")
    if not _runtime_env_str:
        raise ValueError("RUNTIME_ENVIRONMENT environment variable is not set")
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(_runtime_env_str)
except ValueError as e:
    _config_error("RUNTIME_ENVIRONMENT", e, ', '.join(env.value for env in RuntimeEnvironment))

# Remote document store (users/{uid}/cart/main, coupons/{CODE}, ...)
DB_URL = os.environ.get("DB_URL", "sqlite+aiosqlite:///data/storefront.db")

# Local persistent storage (anonymous cart, currency and language preferences)
REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.environ.get("REDIS_PASSWORD") or None
REDIS_DB = int(os.environ.get("REDIS_DB", "0"))
LOCAL_STORAGE_NAMESPACE = os.environ.get("LOCAL_STORAGE_NAMESPACE", "default")

# Currency
try:
    DEFAULT_CURRENCY = Currency(os.environ.get("DEFAULT_CURRENCY", "INR").upper())
except ValueError as e:
    _config_error("DEFAULT_CURRENCY", e, ', '.join(c.value for c in Currency))
CURRENCY_DETECT_URL = os.environ.get("CURRENCY_DETECT_URL", "https://ipapi.co/json/")
CURRENCY_DETECT_TIMEOUT_SECONDS = _positive_float("CURRENCY_DETECT_TIMEOUT_SECONDS", "3")

# Cart write-through to the remote store
CART_SYNC_DEBOUNCE_MS = _positive_int("CART_SYNC_DEBOUNCE_MS", "500")
CART_SYNC_MAX_DELAY_MS = _positive_int("CART_SYNC_MAX_DELAY_MS", "2000")
CART_SYNC_MAX_RETRIES = int(os.environ.get("CART_SYNC_MAX_RETRIES", "3"))
CART_SYNC_RETRY_DELAY_BASE = _positive_float("CART_SYNC_RETRY_DELAY_BASE", "0.5")

# What happens to an anonymous cart when the user logs in.
# "discard" keeps the historic behavior, "merge" sums quantities by product id.
try:
    CART_LOGIN_MIGRATION = CartMigrationPolicy(os.environ.get("CART_LOGIN_MIGRATION", "discard").lower())
except ValueError as e:
    _config_error("CART_LOGIN_MIGRATION", e, ', '.join(p.value for p in CartMigrationPolicy))

# Loyalty rewards
REWARDS_MIN_REDEMPTION = _positive_int("REWARDS_MIN_REDEMPTION", "100")
REWARDS_CAS_MAX_RETRIES = int(os.environ.get("REWARDS_CAS_MAX_RETRIES", "5"))
REWARDS_CAS_RETRY_DELAY_BASE = _positive_float("REWARDS_CAS_RETRY_DELAY_BASE", "0.05")

# Abandoned cart recovery popup
ABANDONED_CART_TIMEOUT_SECONDS = _positive_float("ABANDONED_CART_TIMEOUT_SECONDS", "60")
ABANDONED_CART_COUPON_CODE = os.environ.get("ABANDONED_CART_COUPON_CODE", "COMEBACK5").upper()

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs

# Log retention: keep longer history while developing
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
