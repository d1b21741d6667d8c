"""
Account Settings Model - Typed view of the per-account settings blob.

The ledger owns two keys of the blob (purchasedProducts and
processedTransactions). Every other key belongs to other parts of the app and
is carried through verbatim.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from credit_ledger.models.domain import ordered_union


class AccountSettings(BaseModel):
    """Settings blob with the ledger-owned keys typed and all others kept as extras."""

    model_config = ConfigDict(extra="allow")

    purchased_products: list[str] = Field(default_factory=list, alias="purchasedProducts")
    processed_transactions: list[str] = Field(
        default_factory=list, alias="processedTransactions"
    )

    @field_validator("purchased_products", "processed_transactions", mode="before")
    @classmethod
    def coerce_id_list(cls, v: Any) -> list[str]:
        """Read a non-list as empty; stringify and de-duplicate entries."""
        if not isinstance(v, list):
            return []
        return list(ordered_union(str(item) for item in v if item is not None))

    def has_purchased(self, product_id: str) -> bool:
        return product_id in self.purchased_products

    def has_processed(self, transaction_id: str) -> bool:
        return transaction_id in self.processed_transactions

    def record_purchase(
        self, transaction_id: str, one_time_product_id: str | None = None
    ) -> "AccountSettings":
        """Return a copy with the transaction (and one-time product, if any) recorded."""
        purchased = self.purchased_products
        if one_time_product_id is not None:
            purchased = list(ordered_union(purchased, [one_time_product_id]))
        return self.model_copy(
            update={
                "purchased_products": purchased,
                "processed_transactions": list(
                    ordered_union(self.processed_transactions, [transaction_id])
                ),
            }
        )

    def merged_with(self, other: "AccountSettings") -> "AccountSettings":
        """Return a copy whose owned lists are the union of both; extras stay ours."""
        return self.model_copy(
            update={
                "purchased_products": list(
                    ordered_union(self.purchased_products, other.purchased_products)
                ),
                "processed_transactions": list(
                    ordered_union(self.processed_transactions, other.processed_transactions)
                ),
            }
        )
