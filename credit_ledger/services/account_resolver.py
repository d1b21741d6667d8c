"""
Account Resolver - Find or lazily create the account behind an id.

An id lives in at most one kind. Users are searched before guests; a guest
is created only when neither exists.
"""

from uuid import uuid4

from structlog import get_logger

from credit_ledger.exceptions import InvalidRequestError
from credit_ledger.models.domain import AccountKind, AccountRecord, AccountRef, ResolvedAccount
from credit_ledger.services.account_store import AccountStore

logger = get_logger(__name__)

# Lookup order for resolve()
RESOLUTION_ORDER: tuple[AccountKind, ...] = (AccountKind.USER, AccountKind.GUEST)


class AccountResolver:
    """Resolves account ids to (kind, row) pairs through an AccountStore."""

    def __init__(self, store: AccountStore) -> None:
        self.store = store

    async def find(
        self, kind: AccountKind, account_id: str, for_update: bool = False
    ) -> ResolvedAccount | None:
        """Look up an account of one kind without creating it."""
        record = await self.store.get_by_id(kind, account_id, for_update=for_update)
        if record is None:
            return None
        return ResolvedAccount(ref=AccountRef(kind, account_id), record=record)

    async def resolve(self, account_id: str, for_update: bool = False) -> ResolvedAccount:
        """
        Resolve an id to its account, creating a guest on first touch.

        Raises:
            InvalidRequestError: Empty id
            AccountUnavailableError: Store could not be read or written
        """
        if not account_id:
            raise InvalidRequestError("account id is required")

        for kind in RESOLUTION_ORDER:
            found = await self.find(kind, account_id, for_update=for_update)
            if found is not None:
                return found

        record = await self.store.upsert(AccountKind.GUEST, AccountRecord(account_id=account_id))
        logger.info("guest_account_created", account_id=account_id)
        return ResolvedAccount(ref=AccountRef(AccountKind.GUEST, account_id), record=record)

    async def create_guest(self, guest_id: str | None = None) -> ResolvedAccount:
        """
        Create a guest, or reuse the existing one with the same id.

        A fresh UUID is generated when no id is given.
        """
        account_id = guest_id or str(uuid4())
        record = await self.store.upsert(AccountKind.GUEST, AccountRecord(account_id=account_id))
        logger.info("guest_account_ensured", account_id=account_id, generated=guest_id is None)
        return ResolvedAccount(ref=AccountRef(AccountKind.GUEST, account_id), record=record)

    async def register_user(
        self, user_id: str, email: str | None, initial_credits: int
    ) -> ResolvedAccount:
        """
        Create the user profile after identity verification.

        An existing profile is returned as-is; its balance is never reset.
        """
        if not user_id:
            raise InvalidRequestError("user id is required")

        record = await self.store.upsert(
            AccountKind.USER,
            AccountRecord(account_id=user_id, credits=initial_credits, email=email),
        )
        logger.info("user_account_registered", account_id=user_id, credits=record.credits)
        return ResolvedAccount(ref=AccountRef(AccountKind.USER, user_id), record=record)
