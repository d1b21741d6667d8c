"""
Account Store - Record store for user and guest account rows.

NO DICTIONARIES - Rows cross this boundary as AccountRecord / AccountUpdate.

Every operation is parameterised by AccountKind; both kinds share one
column layout (LedgerAccountMixin).
"""

from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from credit_ledger.db.models import ACCOUNT_MODELS, Guest, User
from credit_ledger.exceptions import AccountUnavailableError, LedgerWriteFailedError
from credit_ledger.models.domain import AccountKind, AccountRecord, AccountUpdate

logger = get_logger(__name__)


class AccountStore(Protocol):
    """Key-value style access to account rows, keyed by id within a kind."""

    async def get_by_id(
        self, kind: AccountKind, account_id: str, for_update: bool = False
    ) -> AccountRecord | None:
        """
        Fetch one account row.

        Raises:
            AccountUnavailableError: Store could not be read
        """
        ...

    async def upsert(self, kind: AccountKind, record: AccountRecord) -> AccountRecord:
        """
        Insert the row unless one with the same id exists; return the stored row.

        An existing row is never overwritten, so concurrent first-touches are safe.

        Raises:
            AccountUnavailableError: Row could not be written or read back
        """
        ...

    async def update_by_id(
        self, kind: AccountKind, account_id: str, fields: AccountUpdate
    ) -> None:
        """
        Write the given fields of one row in a single statement.

        Raises:
            LedgerWriteFailedError: Write failed or no row was updated
        """
        ...


def _json_list(value: Any) -> list[Any]:
    """JSONB array column value; anything else (legacy string, object, null) reads as empty."""
    return value if isinstance(value, list) else []


def _row_to_record(row: User | Guest) -> AccountRecord:
    """Convert ORM account to domain record."""
    return AccountRecord(
        account_id=row.id,
        credits=row.number_of_credits or 0,
        settings=row.settings,
        paid_chapters=tuple(str(c) for c in _json_list(row.paid_chapters)),
        bookmarks=tuple(_json_list(row.bookmarks)),
        email=row.email,
    )


def _update_values(fields: AccountUpdate) -> dict[str, Any]:
    """Column values for the non-None fields of an update."""
    values: dict[str, Any] = {}
    if fields.credits is not None:
        values["number_of_credits"] = fields.credits
    if fields.settings is not None:
        values["settings"] = fields.settings
    if fields.paid_chapters is not None:
        values["paid_chapters"] = list(fields.paid_chapters)
    if fields.bookmarks is not None:
        values["bookmarks"] = list(fields.bookmarks)
    return values


class SqlAccountStore:
    """
    PostgreSQL-backed account store.

    Reads with for_update=True take a row lock (SELECT FOR UPDATE) that is held
    until the session commits, which serialises concurrent read-then-write
    operations on the same account. Pass lock_rows=False to read without locks.
    """

    def __init__(self, session: AsyncSession, lock_rows: bool = True) -> None:
        """Initialize account store with database session."""
        self.session = session
        self.lock_rows = lock_rows

    async def get_by_id(
        self, kind: AccountKind, account_id: str, for_update: bool = False
    ) -> AccountRecord | None:
        model = ACCOUNT_MODELS[kind]
        stmt = (
            select(model)
            .where(model.id == account_id)
            .execution_options(populate_existing=True)
        )
        if for_update and self.lock_rows:
            stmt = stmt.with_for_update()

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(
                "account_read_failed", kind=kind.value, account_id=account_id, error=str(exc)
            )
            raise AccountUnavailableError(account_id, str(exc)) from exc

        row = result.scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def upsert(self, kind: AccountKind, record: AccountRecord) -> AccountRecord:
        model = ACCOUNT_MODELS[kind]
        values: dict[str, Any] = {
            "id": record.account_id,
            "email": record.email,
            "number_of_credits": record.credits,
            "settings": record.settings if isinstance(record.settings, dict) else {},
            "paid_chapters": list(record.paid_chapters),
            "bookmarks": list(record.bookmarks),
        }
        if kind is AccountKind.USER:
            values["authid"] = record.account_id

        stmt = (
            pg_insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[model.id])
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "account_upsert_failed",
                kind=kind.value,
                account_id=record.account_id,
                error=str(exc),
            )
            await self.session.rollback()
            raise AccountUnavailableError(record.account_id, str(exc)) from exc

        # Read back: either our row or the one a concurrent request created first
        stored = await self.get_by_id(kind, record.account_id, for_update=True)
        if stored is None:
            raise AccountUnavailableError(record.account_id, "row not found after upsert")
        return stored

    async def update_by_id(
        self, kind: AccountKind, account_id: str, fields: AccountUpdate
    ) -> None:
        if fields.is_empty():
            return
        values = _update_values(fields)

        model = ACCOUNT_MODELS[kind]
        stmt = update(model).where(model.id == account_id).values(**values)

        try:
            result = await self.session.execute(stmt)
            updated_rows = result.rowcount
            if updated_rows != 1:
                await self.session.rollback()
                raise LedgerWriteFailedError(
                    account_id, f"expected to update 1 row, updated {updated_rows}"
                )
            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "account_update_failed",
                kind=kind.value,
                account_id=account_id,
                error=str(exc),
            )
            await self.session.rollback()
            raise LedgerWriteFailedError(account_id, str(exc)) from exc
