"""
Ledger Service - Entry point for request handlers.

Wires the account store, resolver, receipt verifier, catalogs and engines
for one database session. Build one per request:

    async with get_write_session() as session:
        ledger = LedgerService(session)
        result = await ledger.credit_purchase(user_id, product_id, txn_id, receipt)
"""

from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.config import Settings, get_settings
from credit_ledger.exceptions import VerificationNotConfiguredError
from credit_ledger.models.apple_receipt import AppleReceiptConfig
from credit_ledger.models.domain import (
    CreditPackage,
    CreditResult,
    MergeResult,
    ResolvedAccount,
    UnlockResult,
)
from credit_ledger.observability.logging import log_context
from credit_ledger.services.account_merge import AccountMergeService
from credit_ledger.services.account_resolver import AccountResolver
from credit_ledger.services.account_store import AccountStore, SqlAccountStore
from credit_ledger.services.apple_receipt_verifier import AppleReceiptVerifier, ReceiptVerifier
from credit_ledger.services.chapter_unlock import ChapterUnlockService
from credit_ledger.services.content_catalog import ContentCatalog, SqlChapterCatalog
from credit_ledger.services.credit_catalog import CreditCatalog, default_catalog
from credit_ledger.services.purchase_crediting import (
    PurchaseCreditingService,
    validate_credit_request,
)
from credit_ledger.services.settings_codec import decode_settings


def build_receipt_verifier(settings: Settings) -> AppleReceiptVerifier:
    """
    Build the Apple verifier from settings.

    Raises:
        VerificationNotConfiguredError: Apple shared secret not configured
    """
    if not settings.apple_shared_secret:
        raise VerificationNotConfiguredError("shared secret is required")
    return AppleReceiptVerifier(
        AppleReceiptConfig(
            shared_secret=settings.apple_shared_secret,
            production_url=settings.apple_production_verify_url,
            sandbox_url=settings.apple_sandbox_verify_url,
            timeout_seconds=settings.apple_verify_timeout_seconds,
        )
    )


class LedgerService:
    """Facade over the ledger engines for a single session."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        settings: Settings | None = None,
        catalog: CreditCatalog | None = None,
        verifier: ReceiptVerifier | None = None,
        store: AccountStore | None = None,
        content_catalog: ContentCatalog | None = None,
    ) -> None:
        """
        Initialize ledger for a session.

        The store and content catalog default to the SQL implementations over
        `session`; pass them explicitly to run against other backends. The
        receipt verifier is built lazily so a missing Apple secret only fails
        purchase crediting, after the request itself has been validated.
        """
        self.settings = settings if settings is not None else get_settings()
        if store is None or content_catalog is None:
            if session is None:
                raise ValueError("session is required unless store and content_catalog are given")
            if store is None:
                store = SqlAccountStore(session, lock_rows=self.settings.ledger_lock_rows)
            if content_catalog is None:
                content_catalog = SqlChapterCatalog(session)

        self.store = store
        self.catalog = catalog if catalog is not None else default_catalog()
        self.resolver = AccountResolver(store)
        self._verifier = verifier
        self._purchases: PurchaseCreditingService | None = None
        self.unlocks = ChapterUnlockService(
            self.resolver,
            store,
            content_catalog,
            chapter_cost=self.settings.chapter_cost,
            free_threshold=self.settings.free_chapter_threshold,
        )
        self.merges = AccountMergeService(self.resolver, store)

    @property
    def purchases(self) -> PurchaseCreditingService:
        if self._purchases is None:
            verifier = self._verifier
            if verifier is None:
                verifier = build_receipt_verifier(self.settings)
            self._purchases = PurchaseCreditingService(
                self.resolver, self.store, verifier, self.catalog
            )
        return self._purchases

    async def resolve(self, account_id: str) -> ResolvedAccount:
        """Find the account for an id, creating a guest on first touch."""
        return await self.resolver.resolve(account_id)

    async def credit_purchase(
        self,
        user_id: str | None,
        product_id: str | None,
        transaction_id: str | None,
        receipt_data: str | None,
    ) -> CreditResult:
        """Verify an Apple purchase and credit it exactly once."""
        validate_credit_request(user_id, product_id, transaction_id, receipt_data)
        with log_context(user_id=user_id, operation="credit_purchase"):
            return await self.purchases.credit(user_id, product_id, transaction_id, receipt_data)

    async def unlock_chapter(
        self, user_id: str | None, book_id: str | None, chapter_number: int | None
    ) -> UnlockResult:
        """Unlock a chapter, deducting credits once."""
        with log_context(user_id=user_id, operation="unlock_chapter"):
            return await self.unlocks.unlock(user_id, book_id, chapter_number)

    async def merge_guest(self, user_id: str | None, guest_id: str | None) -> MergeResult:
        """Merge a guest account's ledger state into a user account."""
        with log_context(user_id=user_id, guest_id=guest_id, operation="merge_guest"):
            return await self.merges.merge(user_id, guest_id)

    async def available_packages(self, user_id: str | None = None) -> tuple[CreditPackage, ...]:
        """List credit packages, hiding one-time offers the account already owns."""
        if not user_id:
            return self.catalog.packages
        account = await self.resolver.resolve(user_id)
        settings = decode_settings(account.record.settings)
        return self.catalog.available_for(settings.purchased_products)

    def find_package(self, package_id: str) -> CreditPackage | None:
        return self.catalog.find_by_package_id(package_id)

    async def create_guest(self, guest_id: str | None = None) -> str:
        """Create or reuse a guest account; returns its id."""
        account = await self.resolver.create_guest(guest_id)
        return account.ref.account_id

    async def register_user(self, user_id: str, email: str | None = None) -> ResolvedAccount:
        """Create the user profile after identity verification (never resets it)."""
        return await self.resolver.register_user(
            user_id, email, initial_credits=self.settings.new_user_credits
        )
