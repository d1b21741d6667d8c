"""
Account Merge Service - Folds a guest's ledger state into a user account.

Balances are summed; purchase history, processed transactions, unlocked
chapters and bookmarks are unioned. Only the user row is written. The guest
row is left untouched.
"""

import json
from collections.abc import Iterable
from typing import Any

from structlog import get_logger

from credit_ledger.exceptions import AccountNotFoundError, InvalidRequestError
from credit_ledger.models.domain import AccountKind, AccountUpdate, MergeResult, ordered_union
from credit_ledger.services.account_resolver import AccountResolver
from credit_ledger.services.account_store import AccountStore
from credit_ledger.services.settings_codec import decode_settings, encode_settings

logger = get_logger(__name__)


def _bookmark_key(bookmark: Any) -> str:
    return json.dumps(bookmark, sort_keys=True, default=str)


def union_bookmarks(*groups: Iterable[Any]) -> tuple[Any, ...]:
    """Union of opaque bookmark values (dicts included), keeping first-seen order."""
    seen: dict[str, Any] = {}
    for group in groups:
        for bookmark in group:
            seen.setdefault(_bookmark_key(bookmark), bookmark)
    return tuple(seen.values())


class AccountMergeService:
    """Merges guest accounts into user accounts."""

    def __init__(self, resolver: AccountResolver, store: AccountStore) -> None:
        self.resolver = resolver
        self.store = store

    async def merge(self, target_user_id: str | None, source_guest_id: str | None) -> MergeResult:
        """
        Merge a guest account into a user account.

        Set unions make repeated merges of the same guest leave the sets
        unchanged; the balance is added on every call.

        Raises:
            InvalidRequestError: Missing user or guest id
            AccountNotFoundError: Guest or user doesn't exist
            AccountUnavailableError: Store could not be read
            LedgerWriteFailedError: Merged state could not be persisted
        """
        if not target_user_id or not source_guest_id:
            raise InvalidRequestError("userId and guestId are required")

        source = await self.resolver.find(AccountKind.GUEST, source_guest_id)
        if source is None:
            raise AccountNotFoundError(AccountKind.GUEST, source_guest_id)

        target = await self.resolver.find(AccountKind.USER, target_user_id, for_update=True)
        if target is None:
            raise AccountNotFoundError(AccountKind.USER, target_user_id)

        source_settings = decode_settings(source.record.settings)
        target_settings = decode_settings(target.record.settings)
        merged_settings = target_settings.merged_with(source_settings)

        merged_credits = target.credits + source.credits
        merged_chapters = ordered_union(target.unlocked_keys, source.unlocked_keys)
        merged_bookmarks = union_bookmarks(target.record.bookmarks, source.record.bookmarks)

        await self.store.update_by_id(
            AccountKind.USER,
            target_user_id,
            AccountUpdate(
                credits=merged_credits,
                settings=encode_settings(merged_settings),
                paid_chapters=merged_chapters,
                bookmarks=merged_bookmarks,
            ),
        )

        logger.info(
            "guest_account_merged",
            user_id=target_user_id,
            guest_id=source_guest_id,
            credits_added=source.credits,
            new_balance=merged_credits,
            unlocked_chapters=len(merged_chapters),
        )

        return MergeResult(
            credits_added=source.credits,
            new_balance=merged_credits,
            purchased_products=tuple(merged_settings.purchased_products),
            unlocked_keys=merged_chapters,
        )
