"""
Database Models - SQLAlchemy ORM models with strict typing.

Users and guests live in separate tables with identical ledger columns.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from credit_ledger.models.domain import AccountKind


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class LedgerAccountMixin:
    """Columns shared by the users and guests tables."""

    # Primary Key - opaque id shared across both kinds
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Balance
    number_of_credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Settings blob (purchasedProducts, processedTransactions and foreign keys)
    settings: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    # Unlocked chapter keys ("<bookId>:<chapterNumber>")
    paid_chapters: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)

    # Opaque client bookmarks
    bookmarks: Mapped[list[Any]] = mapped_column(JSONB, nullable=False, default=list)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Any, ...]:
        return (
            CheckConstraint(
                "number_of_credits >= 0",
                name=f"ck_{cls.__tablename__}_credits_non_negative",  # type: ignore[attr-defined]
            ),
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<{type(self).__name__}(id={self.id}, "
            f"number_of_credits={self.number_of_credits})>"
        )


class User(LedgerAccountMixin, Base):
    """
    ORM model for users table.

    Registered accounts, created after magic-link verification.
    """

    __tablename__ = "users"

    # Identity provider user id
    authid: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Guest(LedgerAccountMixin, Base):
    """
    ORM model for guests table.

    Anonymous accounts, created on first credit-consuming interaction.
    """

    __tablename__ = "guests"


class Chapter(Base):
    """
    ORM model for chapters table.

    Content catalog consulted before a paid unlock.
    """

    __tablename__ = "chapters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[str] = mapped_column(String(255), nullable=False)
    chapter_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("chapter_number > 0", name="ck_chapter_number_positive"),
        UniqueConstraint("book_id", "chapter_number", name="uq_chapter_book_number"),
        Index("idx_chapters_book_id", "book_id"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Chapter(book_id={self.book_id}, chapter_number={self.chapter_number})>"


ACCOUNT_MODELS: dict[AccountKind, type[User] | type[Guest]] = {
    AccountKind.USER: User,
    AccountKind.GUEST: Guest,
}
