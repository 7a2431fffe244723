from datetime import datetime

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.document import Document, DocumentDTO


class DocumentRepository:
    @staticmethod
    async def get_by_path(path: str, session: AsyncSession) -> DocumentDTO | None:
        stmt = select(Document).where(Document.path == path)
        document = await session_execute(stmt, session)
        document = document.scalar()
        if document is not None:
            return DocumentDTO.model_validate(document, from_attributes=True)
        else:
            return document

    @staticmethod
    async def upsert(path: str, data: dict, merge: bool, session: AsyncSession) -> DocumentDTO:
        """
        Create or overwrite a document.

        With merge=True the top-level keys of data are merged into the stored
        document, otherwise the stored payload is replaced. Either way the
        version is bumped.
        """
        stmt = select(Document).where(Document.path == path)
        document = await session_execute(stmt, session)
        document = document.scalar()
        if document is None:
            document = Document(path=path, data=dict(data), version=1, updated_at=datetime.utcnow())
            session.add(document)
        else:
            # Assign a new dict: in-place changes to a JSON column are not tracked
            document.data = {**document.data, **data} if merge else dict(data)
            document.version = document.version + 1
            document.updated_at = datetime.utcnow()
        await session_flush(session)
        return DocumentDTO.model_validate(document, from_attributes=True)

    @staticmethod
    async def update_if_version(path: str, data: dict, expected_version: int, session: AsyncSession) -> bool:
        """
        Compare-and-set write.

        expected_version == 0 means the document must not exist yet.
        Returns False when another writer got there first.
        """
        if expected_version == 0:
            session.add(Document(path=path, data=dict(data), version=1, updated_at=datetime.utcnow()))
            try:
                await session_flush(session)
            except IntegrityError:
                return False
            return True

        stmt = (update(Document)
                .where(Document.path == path, Document.version == expected_version)
                .values(data=dict(data), version=Document.version + 1, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def delete_by_path(path: str, session: AsyncSession) -> None:
        stmt = delete(Document).where(Document.path == path)
        await session_execute(stmt, session)

    @staticmethod
    async def get_by_prefix(prefix: str, session: AsyncSession) -> list[DocumentDTO]:
        stmt = select(Document).where(Document.path.startswith(prefix, autoescape=True)).order_by(Document.path)
        documents = await session_execute(stmt, session)
        return [DocumentDTO.model_validate(document, from_attributes=True) for document in documents.scalars().all()]
