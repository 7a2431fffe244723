"""
Unit Tests: TransactionManager

Tests for utils/transaction_manager.py: the retry decorator used by
compare-and-set writers and the atomic transaction context manager.
"""

import pytest
from sqlalchemy.exc import OperationalError

from exceptions import ConcurrentModificationException, RetryExhaustedException
from models.document import Document
from repositories.document import DocumentRepository
from utils.transaction_manager import TransactionManager


class TestBackoffDelay:

    def test_first_attempt_uses_base_delay(self):
        assert TransactionManager.backoff_delay(0, 0.1) == pytest.approx(0.1)

    def test_delay_grows_exponentially(self):
        assert TransactionManager.backoff_delay(2, 0.1) == pytest.approx(0.42)


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConcurrentModificationException("users/u1/rewards/main", len(attempts))
            return "done"

        assert await flaky() == "done"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_locked_database_is_retried(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=1, delay_base=0.001)
        async def locked():
            attempts.append(1)
            if len(attempts) == 1:
                raise OperationalError("UPDATE documents", {}, Exception("database is locked"))
            return True

        assert await locked() is True

    @pytest.mark.asyncio
    async def test_raises_retry_exhausted(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def always_conflicts():
            attempts.append(1)
            raise ConcurrentModificationException("coupons/SAVE10", 1)

        with pytest.raises(RetryExhaustedException) as exc_info:
            await always_conflicts()

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "always_conflicts"
        assert isinstance(exc_info.value.__cause__, ConcurrentModificationException)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def broken():
            attempts.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await broken()
        assert len(attempts) == 1


class TestAtomicTransaction:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session_factory):
        async with TransactionManager.atomic_transaction(session_factory) as session:
            await DocumentRepository.upsert("coupons/SAVE10", {"code": "SAVE10"}, False, session)

        async with TransactionManager.atomic_transaction(session_factory) as session:
            document = await DocumentRepository.get_by_path("coupons/SAVE10", session)

        assert document.data == {"code": "SAVE10"}
        assert document.version == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with TransactionManager.atomic_transaction(session_factory) as session:
                session.add(Document(path="coupons/LOST", data={}, version=1))
                raise RuntimeError("abort")

        async with TransactionManager.atomic_transaction(session_factory) as session:
            assert await DocumentRepository.get_by_path("coupons/LOST", session) is None
