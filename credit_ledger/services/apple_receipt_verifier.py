"""
Apple Receipt Verifier Implementation.

NO DICTIONARIES - Apple's JSON answer is parsed into typed models here and
nowhere else.

Uses the App Store verifyReceipt endpoint. Receipts are sent to production
first; a sandbox receipt (status 21007) is retried exactly once against the
sandbox endpoint.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

from typing import Any, Protocol

import httpx
from structlog import get_logger

from credit_ledger.exceptions import VerificationRejectedError, VerificationUnreachableError
from credit_ledger.models.apple_receipt import (
    PRODUCTION,
    SANDBOX,
    STATUS_SANDBOX_RECEIPT_IN_PRODUCTION,
    STATUS_VALID,
    AppleReceiptConfig,
    ReceiptTransaction,
    VerifiedReceipt,
)

logger = get_logger(__name__)


class ReceiptVerifier(Protocol):
    """Anything that can turn a receipt blob into a verified receipt."""

    async def verify(self, receipt_data: str) -> VerifiedReceipt:
        ...


def _parse_transactions(body: dict[str, Any]) -> tuple[ReceiptTransaction, ...]:
    """Extract (product_id, transaction_id) pairs from receipt.in_app, in order."""
    receipt = body.get("receipt")
    if not isinstance(receipt, dict):
        return ()
    in_app = receipt.get("in_app")
    if not isinstance(in_app, list):
        return ()

    transactions: list[ReceiptTransaction] = []
    for entry in in_app:
        if not isinstance(entry, dict):
            continue
        product_id = entry.get("product_id")
        transaction_id = entry.get("transaction_id")
        if not product_id or not transaction_id:
            continue
        transactions.append(
            ReceiptTransaction(product_id=str(product_id), transaction_id=str(transaction_id))
        )
    return tuple(transactions)


class AppleReceiptVerifier:
    """
    Apple verifyReceipt client.

    Handles the production/sandbox bounce and maps transport failures and
    invalid statuses to ledger errors.
    """

    def __init__(
        self,
        config: AppleReceiptConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Apple receipt verifier.

        Args:
            config: Shared secret, endpoints and timeout
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self._transport = transport

    async def _post_receipt(self, environment: str, receipt_data: str) -> dict[str, Any]:
        """POST the receipt to one environment and return the decoded JSON body."""
        url = self.config.url_for(environment)
        payload = {
            "receipt-data": receipt_data,
            "password": self.config.shared_secret,
            "exclude-old-transactions": True,
        }

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.config.timeout_seconds,
        ) as client:
            try:
                response = await client.post(url, json=payload)
            except httpx.TimeoutException as exc:
                logger.error("apple_receipt_verify_timeout", environment=environment)
                raise VerificationUnreachableError(
                    f"{environment} endpoint timed out after {self.config.timeout_seconds}s"
                ) from exc
            except httpx.HTTPError as exc:
                logger.error(
                    "apple_receipt_verify_transport_error",
                    environment=environment,
                    error=str(exc),
                )
                raise VerificationUnreachableError(f"{environment} endpoint: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "apple_receipt_verify_http_error",
                environment=environment,
                status=response.status_code,
            )
            raise VerificationUnreachableError(
                f"{environment} endpoint returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise VerificationUnreachableError(
                f"{environment} endpoint returned invalid JSON"
            ) from exc

        if not isinstance(body, dict) or not isinstance(body.get("status"), int):
            raise VerificationUnreachableError(f"{environment} endpoint returned no status")

        return body

    async def verify(self, receipt_data: str) -> VerifiedReceipt:
        """
        Verify a receipt with Apple.

        Args:
            receipt_data: Base64 receipt blob from StoreKit

        Returns:
            Verified receipt with the transactions Apple has on record

        Raises:
            VerificationUnreachableError: Transport failure, timeout or bad answer
            VerificationRejectedError: Apple reported a non-zero status
        """
        environment = PRODUCTION
        body = await self._post_receipt(environment, receipt_data)
        status: int = body["status"]

        if status == STATUS_SANDBOX_RECEIPT_IN_PRODUCTION:
            logger.info("apple_receipt_retry_sandbox")
            environment = SANDBOX
            body = await self._post_receipt(environment, receipt_data)
            status = body["status"]

        # A second 21007 (from sandbox itself) is rejected, never bounced again
        if status != STATUS_VALID:
            logger.warning(
                "apple_receipt_rejected",
                environment=environment,
                apple_status=status,
            )
            raise VerificationRejectedError(status)

        receipt = VerifiedReceipt(
            status=status,
            environment=environment,
            transactions=_parse_transactions(body),
        )

        logger.info(
            "apple_receipt_verified",
            environment=environment,
            sandbox=receipt.is_sandbox(),
            transaction_count=len(receipt.transactions),
        )
        return receipt
