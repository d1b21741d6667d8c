"""
Apple receipt domain models - Immutable dataclasses for receipt verification.

NO DICTIONARIES - All data uses strongly typed models.

These model the legacy App Store `verifyReceipt` endpoint, which takes a
base64 receipt blob plus the app's shared secret and returns the in-app
transactions Apple has on record for it.
"""

from dataclasses import dataclass

# verifyReceipt status codes
STATUS_VALID = 0
STATUS_SANDBOX_RECEIPT_IN_PRODUCTION = 21007

PRODUCTION = "production"
SANDBOX = "sandbox"


@dataclass(frozen=True)
class ReceiptTransaction:
    """One in-app purchase as recorded in a verified receipt."""

    product_id: str
    transaction_id: str

    def matches(self, product_id: str, transaction_id: str) -> bool:
        """Both identifiers must match exactly."""
        return self.product_id == product_id and self.transaction_id == transaction_id


@dataclass(frozen=True)
class VerifiedReceipt:
    """Apple's answer for a receipt that verified with status 0."""

    status: int
    environment: str  # Which endpoint accepted the receipt
    transactions: tuple[ReceiptTransaction, ...] = ()

    def find_transaction(
        self, product_id: str, transaction_id: str
    ) -> ReceiptTransaction | None:
        """Find the transaction matching both claimed identifiers."""
        for transaction in self.transactions:
            if transaction.matches(product_id, transaction_id):
                return transaction
        return None

    def is_sandbox(self) -> bool:
        """Check if this receipt was accepted by the sandbox endpoint."""
        return self.environment == SANDBOX


@dataclass(frozen=True)
class AppleReceiptConfig:
    """Configuration for the verifyReceipt endpoints."""

    shared_secret: str
    production_url: str = "https://buy.itunes.apple.com/verifyReceipt"
    sandbox_url: str = "https://sandbox.itunes.apple.com/verifyReceipt"
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration fields."""
        if not self.shared_secret:
            raise ValueError("Apple IAP is not configured: shared secret is required")
        if not self.production_url or not self.sandbox_url:
            raise ValueError("Both verifyReceipt endpoints are required")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Timeout must be positive: {self.timeout_seconds}")

    def url_for(self, environment: str) -> str:
        """Get the verifyReceipt URL for an environment."""
        if environment == SANDBOX:
            return self.sandbox_url
        return self.production_url
