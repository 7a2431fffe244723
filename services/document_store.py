"""
Remote document store.

Path-addressed JSON documents with merge writes, compare-and-set writes and
live subscriptions. This is the storage contract the cart, rewards, wishlist
and coupon code is written against:

    users/{uid}/cart/main
    users/{uid}/rewards/main
    users/{uid}/wishlist/main
    coupons/{CODE}
    abandoned_carts/{id}

Subscribers are notified after every committed write to their path, and once
with the current state right after subscribing. Listener failures are logged
and never reach the writer.
"""

import copy
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from exceptions import ConcurrentModificationException, DocumentStoreException
from repositories.document import DocumentRepository
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

DocumentListener = Callable[[dict[str, Any] | None], Awaitable[None]]


class DocumentStore:

    def __init__(self, session_factory: async_sessionmaker | None = None):
        """
        Args:
            session_factory: async_sessionmaker to use; defaults to db.session_maker
        """
        self._session_factory = session_factory
        self._listeners: dict[str, list[DocumentListener]] = defaultdict(list)

    async def get(self, path: str) -> dict[str, Any] | None:
        data, _ = await self.get_versioned(path)
        return data

    async def get_versioned(self, path: str) -> tuple[dict[str, Any] | None, int]:
        """
        Read a document together with its version.

        Returns:
            (data, version) - (None, 0) when the document does not exist
        """
        try:
            async with TransactionManager.atomic_transaction(self._session_factory) as session:
                document = await DocumentRepository.get_by_path(path, session)
        except SQLAlchemyError as e:
            raise DocumentStoreException(path, str(e)) from e
        if document is None:
            return None, 0
        return copy.deepcopy(document.data), document.version

    async def list_documents(self, prefix: str) -> dict[str, dict[str, Any]]:
        """All documents whose path starts with prefix, keyed by path."""
        try:
            async with TransactionManager.atomic_transaction(self._session_factory) as session:
                documents = await DocumentRepository.get_by_prefix(prefix, session)
        except SQLAlchemyError as e:
            raise DocumentStoreException(prefix, str(e)) from e
        return {document.path: copy.deepcopy(document.data) for document in documents}

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> int:
        """
        Write a document.

        Args:
            path: Document path
            data: Payload; with merge=True only its top-level keys are replaced
            merge: Merge into the stored document instead of overwriting it

        Returns:
            The new document version
        """
        try:
            async with TransactionManager.atomic_transaction(self._session_factory) as session:
                document = await DocumentRepository.upsert(path, data, merge, session)
        except SQLAlchemyError as e:
            raise DocumentStoreException(path, str(e)) from e
        logger.debug(f"Document {path} written (version {document.version}, merge={merge})")
        await self._notify(path, document.data)
        return document.version

    async def compare_and_set(self, path: str, data: dict[str, Any], expected_version: int) -> int:
        """
        Replace a document only if it is still at expected_version.

        expected_version=0 creates the document and fails if it already exists.

        Returns:
            The new document version

        Raises:
            ConcurrentModificationException: another writer changed the document first
            DocumentStoreException: the store could not be reached
        """
        try:
            async with TransactionManager.atomic_transaction(self._session_factory) as session:
                updated = await DocumentRepository.update_if_version(path, data, expected_version, session)
                if not updated:
                    raise ConcurrentModificationException(path, expected_version)
        except SQLAlchemyError as e:
            raise DocumentStoreException(path, str(e)) from e
        logger.debug(f"Document {path} compare-and-set to version {expected_version + 1}")
        await self._notify(path, data)
        return expected_version + 1

    async def delete(self, path: str) -> None:
        try:
            async with TransactionManager.atomic_transaction(self._session_factory) as session:
                await DocumentRepository.delete_by_path(path, session)
        except SQLAlchemyError as e:
            raise DocumentStoreException(path, str(e)) from e
        await self._notify(path, None)

    async def subscribe(self, path: str, on_change: DocumentListener) -> Callable[[], None]:
        """
        Register a live listener for one document.

        The listener is called right away with the current document (or None)
        and then after every write to path.

        Returns:
            Callable that removes the listener; calling it twice is harmless
        """
        self._listeners[path].append(on_change)

        def unsubscribe() -> None:
            listeners = self._listeners.get(path)
            if listeners and on_change in listeners:
                listeners.remove(on_change)
                if not listeners:
                    del self._listeners[path]

        try:
            current = await self.get(path)
        except DocumentStoreException as e:
            logger.error(f"Initial snapshot for {path} failed: {e}")
            return unsubscribe
        await self._deliver(path, on_change, current)
        return unsubscribe

    def listener_count(self, path: str) -> int:
        return len(self._listeners.get(path, []))

    async def _notify(self, path: str, data: dict[str, Any] | None) -> None:
        for listener in list(self._listeners.get(path, [])):
            await self._deliver(path, listener, data)

    @staticmethod
    async def _deliver(path: str, listener: DocumentListener, data: dict[str, Any] | None) -> None:
        try:
            await listener(copy.deepcopy(data))
        except Exception as e:
            logger.exception(f"Listener for {path} failed: {e}")
