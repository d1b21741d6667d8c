"""
Purchase Crediting Service - Turns verified App Store purchases into credits.

Crediting is exactly-once per account. Two independent guards make replays
no-ops:
1. One-time guard: a one-time package already in purchasedProducts
2. Replay guard: a transaction id already in processedTransactions

Nothing is written before Apple has verified the receipt, and balance and
purchase history are persisted in a single update.
"""

from structlog import get_logger

from credit_ledger.exceptions import (
    InvalidRequestError,
    TransactionNotFoundError,
    UnknownProductError,
)
from credit_ledger.models.domain import AccountUpdate, CreditPackage, CreditResult
from credit_ledger.services.account_resolver import AccountResolver
from credit_ledger.services.account_store import AccountStore
from credit_ledger.services.apple_receipt_verifier import ReceiptVerifier
from credit_ledger.services.credit_catalog import CreditCatalog
from credit_ledger.services.settings_codec import decode_settings, encode_settings

logger = get_logger(__name__)

ALREADY_PURCHASED = "Product already purchased"
ALREADY_PROCESSED = "Transaction already processed"


def validate_credit_request(
    user_id: str | None,
    purchase_product_id: str | None,
    transaction_id: str | None,
    receipt_data: str | None,
) -> tuple[str, str, str, str]:
    """
    Check that a credit request carries every argument.

    Returns:
        (user_id, purchase_product_id, transaction_id, receipt_data)

    Raises:
        InvalidRequestError: Any argument missing or empty
    """
    # A receipt without a bound transaction id could be replayed forever
    if not receipt_data or not purchase_product_id or not transaction_id or not user_id:
        raise InvalidRequestError(
            "receiptData, productId, transactionId, and userId are required"
        )
    return user_id, purchase_product_id, transaction_id, receipt_data


class PurchaseCreditingService:
    """Credits accounts for verified Apple in-app purchases."""

    def __init__(
        self,
        resolver: AccountResolver,
        store: AccountStore,
        verifier: ReceiptVerifier,
        catalog: CreditCatalog,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.verifier = verifier
        self.catalog = catalog

    async def credit(
        self,
        user_id: str | None,
        purchase_product_id: str | None,
        transaction_id: str | None,
        receipt_data: str | None,
    ) -> CreditResult:
        """
        Verify a purchase with Apple and credit the account once.

        Returns:
            Credits added (0 for a replay) and the resulting balance

        Raises:
            InvalidRequestError: Any argument missing
            VerificationUnreachableError: Apple could not be reached
            VerificationRejectedError: Apple rejected the receipt
            TransactionNotFoundError: Claimed product/transaction not in receipt
            UnknownProductError: Receipt product has no credit package
            AccountUnavailableError: Account could not be resolved
            LedgerWriteFailedError: Credit could not be persisted
        """
        user_id, purchase_product_id, transaction_id, receipt_data = validate_credit_request(
            user_id, purchase_product_id, transaction_id, receipt_data
        )

        receipt = await self.verifier.verify(receipt_data)

        matched = receipt.find_transaction(purchase_product_id, transaction_id)
        if matched is None:
            logger.warning(
                "purchase_transaction_not_in_receipt",
                user_id=user_id,
                product_id=purchase_product_id,
                transaction_id=transaction_id,
                receipt_transactions=len(receipt.transactions),
            )
            raise TransactionNotFoundError(
                purchase_product_id,
                transaction_id,
                available=tuple((t.product_id, t.transaction_id) for t in receipt.transactions),
            )

        # The receipt's product id is authoritative
        package = self.catalog.find_by_product_id(matched.product_id)
        if package is None:
            logger.error(
                "purchase_unknown_product",
                receipt_product_id=matched.product_id,
                requested_product_id=purchase_product_id,
            )
            raise UnknownProductError(matched.product_id)

        return await self._apply_credit(user_id, package, transaction_id)

    async def _apply_credit(
        self, user_id: str, package: CreditPackage, transaction_id: str
    ) -> CreditResult:
        """Run the idempotency guards and persist the credit."""
        account = await self.resolver.resolve(user_id, for_update=True)
        settings = decode_settings(account.record.settings)
        product_id = package.purchase_product_id

        if package.is_one_time_offer and settings.has_purchased(product_id):
            logger.info(
                "purchase_skipped_one_time_owned",
                account=str(account.ref),
                product_id=product_id,
                transaction_id=transaction_id,
            )
            return CreditResult(
                credits_added=0,
                new_balance=account.credits,
                purchased_products=tuple(settings.purchased_products),
                message=ALREADY_PURCHASED,
            )

        if settings.has_processed(transaction_id):
            logger.info(
                "purchase_skipped_transaction_processed",
                account=str(account.ref),
                transaction_id=transaction_id,
            )
            return CreditResult(
                credits_added=0,
                new_balance=account.credits,
                purchased_products=tuple(settings.purchased_products),
                message=ALREADY_PROCESSED,
            )

        new_balance = account.credits + package.total_credits
        updated_settings = settings.record_purchase(
            transaction_id,
            one_time_product_id=product_id if package.is_one_time_offer else None,
        )

        await self.store.update_by_id(
            account.ref.kind,
            account.ref.account_id,
            AccountUpdate(credits=new_balance, settings=encode_settings(updated_settings)),
        )

        logger.info(
            "purchase_credited",
            account=str(account.ref),
            package_id=package.package_id,
            product_id=product_id,
            transaction_id=transaction_id,
            credits_added=package.total_credits,
            new_balance=new_balance,
        )

        return CreditResult(
            credits_added=package.total_credits,
            new_balance=new_balance,
            purchased_products=tuple(updated_settings.purchased_products),
        )

