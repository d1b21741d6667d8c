"""
Tests for domain models.
"""

import pytest

from credit_ledger.models.domain import (
    AccountKind,
    AccountRecord,
    AccountRef,
    AccountUpdate,
    ContentUnit,
    ResolvedAccount,
    ordered_union,
)


class TestAccountRecord:
    """Tests for AccountRecord."""

    def test_defaults(self):
        record = AccountRecord(account_id="guest-1")
        assert record.credits == 0
        assert record.paid_chapters == ()
        assert record.settings is None

    def test_negative_credits_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            AccountRecord(account_id="guest-1", credits=-1)

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            AccountRecord(account_id="")


class TestAccountUpdate:
    def test_empty(self):
        assert AccountUpdate().is_empty()
        assert not AccountUpdate(credits=0).is_empty()

    def test_negative_credits_rejected(self):
        with pytest.raises(ValueError):
            AccountUpdate(credits=-50)


class TestAccountRef:
    def test_str(self):
        assert str(AccountRef(AccountKind.GUEST, "guest-1")) == "guests/guest-1"

    def test_kind_values_are_table_names(self):
        assert AccountKind.USER.value == "users"
        assert AccountKind.GUEST.value == "guests"


class TestResolvedAccount:
    def test_exposes_record_fields(self):
        account = ResolvedAccount(
            ref=AccountRef(AccountKind.USER, "user-1"),
            record=AccountRecord(account_id="user-1", credits=75, paid_chapters=("book1:6",)),
        )
        assert account.credits == 75
        assert account.unlocked_keys == ("book1:6",)


class TestContentUnit:
    def test_key(self):
        assert ContentUnit(content_id="book1", unit_number=6).key == "book1:6"


class TestOrderedUnion:
    def test_keeps_first_seen_order(self):
        assert ordered_union(["b", "a"], ["a", "c"]) == ("b", "a", "c")

    def test_no_groups(self):
        assert ordered_union() == ()
