import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional
from functools import wraps
from datetime import datetime

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from db import get_db_session, session_commit, session_rollback
from exceptions import ConcurrentModificationException, RetryExhaustedException

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Utility class for managing document store transactions with rollback
    and retry logic for compare-and-set conflicts.
    """

    # Transaction timeout in seconds
    TRANSACTION_TIMEOUT = 30

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 0.1  # Base delay in seconds

    # Errors worth retrying: a lost compare-and-set race or a locked SQLite file
    RETRYABLE_ERRORS = (ConcurrentModificationException, OperationalError)

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(factory: async_sessionmaker | None = None,
                                 timeout: Optional[int] = None) -> AsyncGenerator[Any, None]:
        """
        Context manager for atomic database transactions.

        Commits when the block exits cleanly, rolls back and re-raises otherwise.

        Usage:
            async with TransactionManager.atomic_transaction() as session:
                # Database operations here
                await session.execute(...)
        """
        timeout = timeout or TransactionManager.TRANSACTION_TIMEOUT
        session = None

        try:
            async with get_db_session(factory) as session:
                transaction_start = datetime.utcnow()

                yield session

                # Check transaction duration
                duration = (datetime.utcnow() - transaction_start).total_seconds()
                if duration > timeout:
                    logger.warning(f"Transaction exceeded timeout: {duration}s > {timeout}s")

                await session_commit(session)
                logger.debug(f"Transaction committed successfully in {duration:.2f}s")

        except Exception as e:
            if session:
                try:
                    await session_rollback(session)
                    logger.debug(f"Transaction rolled back due to error: {str(e)}")
                except Exception as rollback_error:
                    logger.critical(f"Failed to rollback transaction: {str(rollback_error)}")
            raise

    @staticmethod
    def backoff_delay(attempt: int, delay_base: float) -> float:
        """Exponential backoff with a small linear jitter term."""
        return delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None,
                   retry_on: tuple[type[BaseException], ...] | None = None):
        """
        Decorator for automatic retry of store operations with exponential backoff.

        The decorated coroutine is re-run from scratch on every attempt, so it
        must re-read whatever state it depends on.

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
            retry_on: Exception types that trigger a retry

        Raises:
            RetryExhaustedException: when every attempt hit a retryable error
        """
        max_retries = TransactionManager.MAX_RETRIES if max_retries is None else max_retries
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE
        retry_on = retry_on or TransactionManager.RETRYABLE_ERRORS

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except retry_on as e:
                        if attempt == max_retries:
                            logger.error(f"Function {func.__name__} failed after {max_retries} retries: {str(e)}")
                            raise RetryExhaustedException(func.__name__, attempt + 1) from e

                        delay = TransactionManager.backoff_delay(attempt, delay_base)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

            return wrapper
        return decorator
