"""
Content Catalog - Existence checks for chapters before a paid unlock.
"""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from credit_ledger.db.models import Chapter
from credit_ledger.exceptions import ContentNotFoundError

logger = get_logger(__name__)


class ContentCatalog(Protocol):
    """Answers whether a chapter exists."""

    async def exists(self, content_id: str, unit_number: int) -> bool:
        ...


class SqlChapterCatalog:
    """Chapter catalog backed by the chapters table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, content_id: str, unit_number: int) -> bool:
        """
        Check that a chapter exists for the book.

        Raises:
            ContentNotFoundError: The catalog could not be queried
        """
        stmt = (
            select(Chapter.id)
            .where(
                Chapter.book_id == content_id,
                Chapter.chapter_number == unit_number,
            )
            .limit(1)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(
                "chapter_lookup_failed",
                book_id=content_id,
                chapter_number=unit_number,
                error=str(exc),
            )
            raise ContentNotFoundError(content_id, unit_number) from exc

        return result.scalar_one_or_none() is not None
