"""
Tests for AccountMergeService.
"""

import pytest

from credit_ledger.exceptions import (
    AccountNotFoundError,
    InvalidRequestError,
    LedgerWriteFailedError,
)
from credit_ledger.models.domain import AccountKind
from credit_ledger.services.account_merge import AccountMergeService, union_bookmarks
from credit_ledger.services.account_resolver import AccountResolver
from credit_ledger.services.settings_codec import decode_settings
from tests.conftest import InMemoryAccountStore


@pytest.fixture
def merges(store: InMemoryAccountStore) -> AccountMergeService:
    return AccountMergeService(AccountResolver(store), store)


class TestMerge:
    """Tests for merge()."""

    async def test_balances_summed_and_sets_unioned(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        guest_with_credits(
            "guest-1",
            credits=550,
            paid_chapters=("book1:6", "book1:7"),
            settings={"purchasedProducts": ["credits_203"], "processedTransactions": ["t1"]},
        )
        user_with_credits(
            "user-1",
            credits=1250,
            paid_chapters=("book1:7", "book2:9"),
            settings={"processedTransactions": ["t2"]},
        )

        result = await merges.merge("user-1", "guest-1")

        assert result.credits_added == 550
        assert result.new_balance == 1800
        assert result.purchased_products == ("credits_203",)
        assert set(result.unlocked_keys) == {"book1:6", "book1:7", "book2:9"}
        row = store.get(AccountKind.USER, "user-1")
        assert row.credits == 1800
        merged = decode_settings(row.settings)
        assert set(merged.processed_transactions) == {"t1", "t2"}

    async def test_guest_row_untouched(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        guest = guest_with_credits("guest-1", credits=300, paid_chapters=("book1:6",))
        user_with_credits("user-1", credits=0)

        await merges.merge("user-1", "guest-1")

        assert store.get(AccountKind.GUEST, "guest-1") == guest

    async def test_repeat_merge_keeps_sets_stable(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        """Sets are unchanged by a second merge; the balance is added again."""
        guest_with_credits("guest-1", credits=100, paid_chapters=("book1:6",))
        user_with_credits("user-1", credits=0, paid_chapters=("book2:8",))

        first = await merges.merge("user-1", "guest-1")
        second = await merges.merge("user-1", "guest-1")

        assert second.unlocked_keys == first.unlocked_keys
        assert second.new_balance == 200

    async def test_bookmarks_unioned(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        guest_with_credits(
            "guest-1", bookmarks=({"book": "book1", "page": 3}, {"book": "book2", "page": 1})
        )
        user_with_credits("user-1", bookmarks=({"page": 3, "book": "book1"},))

        await merges.merge("user-1", "guest-1")

        assert store.get(AccountKind.USER, "user-1").bookmarks == (
            {"page": 3, "book": "book1"},
            {"book": "book2", "page": 1},
        )

    async def test_target_lock_requested(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        guest_with_credits("guest-1")
        user_with_credits("user-1")

        await merges.merge("user-1", "guest-1")

        assert (AccountKind.USER, "user-1") in store.locked_reads


class TestMergeRejections:
    """Tests for merge() failures."""

    async def test_missing_guest(
        self, merges: AccountMergeService, store: InMemoryAccountStore, user_with_credits
    ):
        user_with_credits("user-1")

        with pytest.raises(AccountNotFoundError) as exc_info:
            await merges.merge("user-1", "guest-missing")

        assert exc_info.value.kind is AccountKind.GUEST
        assert store.get(AccountKind.GUEST, "guest-missing") is None

    async def test_missing_user(
        self, merges: AccountMergeService, store: InMemoryAccountStore, guest_with_credits
    ):
        guest_with_credits("guest-1")

        with pytest.raises(AccountNotFoundError) as exc_info:
            await merges.merge("user-missing", "guest-1")

        assert exc_info.value.kind is AccountKind.USER
        assert store.writes == 0

    async def test_guest_id_that_is_a_user_not_merged(
        self, merges: AccountMergeService, user_with_credits
    ):
        user_with_credits("user-1")
        user_with_credits("user-2")

        with pytest.raises(AccountNotFoundError):
            await merges.merge("user-1", "user-2")

    @pytest.mark.parametrize("user_id,guest_id", [(None, "guest-1"), ("user-1", None), ("", "")])
    async def test_missing_ids(self, merges: AccountMergeService, user_id, guest_id):
        with pytest.raises(InvalidRequestError):
            await merges.merge(user_id, guest_id)

    async def test_write_failure(
        self,
        merges: AccountMergeService,
        store: InMemoryAccountStore,
        guest_with_credits,
        user_with_credits,
    ):
        guest_with_credits("guest-1", credits=100)
        user_with_credits("user-1", credits=5)
        store.fail_writes = True

        with pytest.raises(LedgerWriteFailedError):
            await merges.merge("user-1", "guest-1")

        assert store.get(AccountKind.USER, "user-1").credits == 5


class TestUnionBookmarks:
    def test_first_seen_order(self):
        assert union_bookmarks(["a", "b"], ["b", "c"]) == ("a", "b", "c")

    def test_dict_key_order_ignored(self):
        assert union_bookmarks([{"a": 1, "b": 2}], [{"b": 2, "a": 1}]) == ({"a": 1, "b": 2},)

    def test_empty(self):
        assert union_bookmarks() == ()
