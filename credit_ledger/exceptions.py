"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from credit_ledger.models.domain import AccountKind


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    pass


class InvalidRequestError(LedgerError):
    """Raised when caller input is missing or malformed. Not retryable."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid request: {message}")


class AccountUnavailableError(LedgerError):
    """Raised when the record store cannot be read or the account cannot be created."""

    def __init__(self, account_id: str, reason: str) -> None:
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Account {account_id} unavailable: {reason}")


class AccountNotFoundError(LedgerError):
    """Raised when a required account row doesn't exist."""

    def __init__(self, kind: AccountKind, account_id: str) -> None:
        self.kind = kind
        self.account_id = account_id
        super().__init__(f"Account not found: {kind.value}/{account_id}")


class VerificationUnreachableError(LedgerError):
    """Raised when the receipt authority cannot be reached or times out."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Receipt verification unreachable: {message}")


class VerificationRejectedError(LedgerError):
    """Raised when the receipt authority reports the receipt as invalid."""

    def __init__(self, apple_status: int) -> None:
        self.apple_status = apple_status
        super().__init__(f"Receipt verification failed with status {apple_status}")


class TransactionNotFoundError(LedgerError):
    """Raised when the claimed (product, transaction) pair is not in the verified receipt."""

    def __init__(
        self,
        product_id: str,
        transaction_id: str,
        available: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.product_id = product_id
        self.transaction_id = transaction_id
        self.available = available
        super().__init__(
            f"Transaction not found in receipt: product={product_id}, "
            f"transaction={transaction_id}"
        )


class UnknownProductError(LedgerError):
    """Raised when a receipt product id has no credit package."""

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Unknown product ID: {product_id}")


class InsufficientCreditsError(LedgerError):
    """Raised when account has insufficient balance for an unlock."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient credits. Balance: {balance}, Required: {required}")

    @property
    def current(self) -> int:
        """Balance at the time of the rejected unlock."""
        return self.balance


class ContentNotFoundError(LedgerError):
    """Raised when the chapter to unlock doesn't exist."""

    def __init__(self, content_id: str, unit_number: int) -> None:
        self.content_id = content_id
        self.unit_number = unit_number
        super().__init__(f"Chapter not found: {content_id}:{unit_number}")


class LedgerWriteFailedError(LedgerError):
    """
    Raised when persisting a ledger mutation fails after validation passed.

    Safe to retry: the idempotency guards prevent double crediting.
    """

    def __init__(self, account_id: str, message: str) -> None:
        self.account_id = account_id
        self.message = message
        super().__init__(f"Ledger write failed for {account_id}: {message}")


class VerificationNotConfiguredError(LedgerError):
    """Raised when purchase crediting is attempted without Apple credentials."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Apple IAP is not configured: {message}")
