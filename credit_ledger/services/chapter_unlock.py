"""
Chapter Unlock Service - Deducts credits for paid chapters, once per chapter.
"""

from structlog import get_logger

from credit_ledger.exceptions import (
    ContentNotFoundError,
    InsufficientCreditsError,
    InvalidRequestError,
)
from credit_ledger.models.domain import AccountUpdate, ContentUnit, UnlockResult
from credit_ledger.services.account_resolver import AccountResolver
from credit_ledger.services.account_store import AccountStore
from credit_ledger.services.content_catalog import ContentCatalog

logger = get_logger(__name__)

CHAPTER_IS_FREE = "Chapter is free"
ALREADY_UNLOCKED = "Chapter already unlocked"


class ChapterUnlockService:
    """Unlocks paid chapters against an account's credit balance."""

    def __init__(
        self,
        resolver: AccountResolver,
        store: AccountStore,
        catalog: ContentCatalog,
        chapter_cost: int,
        free_threshold: int,
    ) -> None:
        if chapter_cost <= 0:
            raise ValueError(f"Chapter cost must be positive: {chapter_cost}")
        self.resolver = resolver
        self.store = store
        self.catalog = catalog
        self.chapter_cost = chapter_cost
        self.free_threshold = free_threshold

    def is_free(self, unit_number: int) -> bool:
        return unit_number < self.free_threshold

    async def unlock(
        self, user_id: str | None, content_id: str | None, unit_number: int | None
    ) -> UnlockResult:
        """
        Unlock a chapter for an account.

        Free chapters never touch the account. Unlocking an already unlocked
        chapter costs nothing and reports the current balance.

        Raises:
            InvalidRequestError: Missing user, book or chapter number
            AccountUnavailableError: Account could not be resolved
            ContentNotFoundError: Chapter doesn't exist
            InsufficientCreditsError: Balance below chapter cost
            LedgerWriteFailedError: Unlock could not be persisted
        """
        if not user_id or not content_id or unit_number is None:
            raise InvalidRequestError("userId, bookId, and chapterNumber are required")

        if self.is_free(unit_number):
            return UnlockResult(credits_deducted=0, new_balance=None, message=CHAPTER_IS_FREE)

        unit = ContentUnit(content_id=content_id, unit_number=unit_number)
        account = await self.resolver.resolve(user_id, for_update=True)
        balance = account.credits
        unlocked = account.unlocked_keys

        if unit.key in unlocked:
            return UnlockResult(
                credits_deducted=0,
                new_balance=balance,
                unlocked_keys=unlocked,
                message=ALREADY_UNLOCKED,
            )

        if not await self.catalog.exists(content_id, unit_number):
            raise ContentNotFoundError(content_id, unit_number)

        if balance < self.chapter_cost:
            logger.info(
                "chapter_unlock_insufficient_credits",
                account=str(account.ref),
                chapter_key=unit.key,
                balance=balance,
                required=self.chapter_cost,
            )
            raise InsufficientCreditsError(balance=balance, required=self.chapter_cost)

        new_balance = balance - self.chapter_cost
        updated_unlocked = (*unlocked, unit.key)

        await self.store.update_by_id(
            account.ref.kind,
            account.ref.account_id,
            AccountUpdate(credits=new_balance, paid_chapters=updated_unlocked),
        )

        logger.info(
            "chapter_unlocked",
            account=str(account.ref),
            chapter_key=unit.key,
            credits_deducted=self.chapter_cost,
            new_balance=new_balance,
        )

        return UnlockResult(
            credits_deducted=self.chapter_cost,
            new_balance=new_balance,
            unlocked_keys=updated_unlocked,
        )
