"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
Bookmarks are the one exception: they are opaque client data and pass through
the ledger untouched.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AccountKind(str, Enum):
    """Which table an account lives in."""

    USER = "users"
    GUEST = "guests"


@dataclass(frozen=True)
class AccountRef:
    """Immutable reference to an account row of a given kind."""

    kind: AccountKind
    account_id: str

    def __post_init__(self) -> None:
        """Validate account reference."""
        if not self.account_id:
            raise ValueError("account_id cannot be empty")

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.account_id}"


@dataclass(frozen=True)
class AccountRecord:
    """
    Raw account row as exchanged with the record store.

    `settings` is the undecoded settings blob (see settings_codec).
    """

    account_id: str
    credits: int = 0
    settings: Any = None
    paid_chapters: tuple[str, ...] = ()
    bookmarks: tuple[Any, ...] = ()
    email: str | None = None

    def __post_init__(self) -> None:
        """Validate balance constraints."""
        if not self.account_id:
            raise ValueError("account_id cannot be empty")
        if self.credits < 0:
            raise ValueError(f"Credits cannot be negative: {self.credits}")


@dataclass(frozen=True)
class AccountUpdate:
    """
    Partial update for one account row.

    Only fields that are not None are written. All given fields are written
    together in a single statement.
    """

    credits: int | None = None
    settings: dict[str, Any] | None = None
    paid_chapters: tuple[str, ...] | None = None
    bookmarks: tuple[Any, ...] | None = None

    def __post_init__(self) -> None:
        """Validate update constraints."""
        if self.credits is not None and self.credits < 0:
            raise ValueError(f"Credits cannot be negative: {self.credits}")

    def is_empty(self) -> bool:
        """True when the update would not change any column."""
        return (
            self.credits is None
            and self.settings is None
            and self.paid_chapters is None
            and self.bookmarks is None
        )


@dataclass(frozen=True)
class ResolvedAccount:
    """An account found (or created) by the resolver, with where it lives."""

    ref: AccountRef
    record: AccountRecord

    @property
    def credits(self) -> int:
        return self.record.credits

    @property
    def unlocked_keys(self) -> tuple[str, ...]:
        return self.record.paid_chapters


@dataclass(frozen=True)
class CreditPackage:
    """A purchasable bundle of credits mapped to an App Store product."""

    package_id: str
    purchase_product_id: str  # App Store Connect product ID
    total_credits: int  # Credits granted on purchase (base + bonus)
    is_one_time_offer: bool = False
    base_credits: int = 0
    bonus_percent: int = 0
    price: float = 0.0
    highlight: bool = False
    tagline: str | None = None

    def __post_init__(self) -> None:
        """Validate package configuration."""
        if not self.package_id:
            raise ValueError("Package ID required")
        if not self.purchase_product_id:
            raise ValueError("Product ID required")
        if self.total_credits <= 0:
            raise ValueError(f"Credits must be positive: {self.total_credits}")


@dataclass(frozen=True)
class ContentUnit:
    """A single chapter of a book."""

    content_id: str
    unit_number: int

    @property
    def key(self) -> str:
        """Key stored in an account's unlocked set."""
        return f"{self.content_id}:{self.unit_number}"


@dataclass(frozen=True)
class CreditResult:
    """Outcome of crediting a purchase."""

    credits_added: int
    new_balance: int
    purchased_products: tuple[str, ...] = ()
    message: str | None = None  # Set when nothing was credited


@dataclass(frozen=True)
class UnlockResult:
    """
    Outcome of unlocking a chapter.

    `new_balance` is None for free chapters, where the account is never read.
    """

    credits_deducted: int
    new_balance: int | None
    unlocked_keys: tuple[str, ...] = ()
    message: str | None = None


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging a guest account into a user account."""

    credits_added: int
    new_balance: int
    purchased_products: tuple[str, ...] = ()
    unlocked_keys: tuple[str, ...] = ()


def ordered_union(*groups: Iterable[str]) -> tuple[str, ...]:
    """Union of string groups, keeping first-seen order."""
    return tuple(dict.fromkeys(item for group in groups for item in group))
