"""
Credit package catalog.

Maps App Store product IDs to credit amounts. Product IDs must match those
configured in App Store Connect. The catalog is built once at startup and
never mutated; pass it to the services that need it.
"""

from collections.abc import Iterable
from types import MappingProxyType

from credit_ledger.models.domain import CreditPackage

# Default catalog (must match App Store Connect configuration)
# total_credits = base_credits * (1 + bonus_percent / 100)
DEFAULT_CREDIT_PACKAGES: tuple[CreditPackage, ...] = (
    CreditPackage(
        package_id="201",
        purchase_product_id="credits_203",
        base_credits=200,
        bonus_percent=200,
        total_credits=600,
        price=1.99,
        is_one_time_offer=True,
        highlight=True,
        tagline="Limited one-time starter boost",
    ),
    CreditPackage(
        package_id="500",
        purchase_product_id="credits_503",
        base_credits=500,
        bonus_percent=0,
        total_credits=500,
        price=4.99,
    ),
    CreditPackage(
        package_id="1000",
        purchase_product_id="credits_1003",
        base_credits=1000,
        bonus_percent=15,
        total_credits=1150,
        price=9.99,
    ),
    CreditPackage(
        package_id="1500",
        purchase_product_id="credits_1503",
        base_credits=1500,
        bonus_percent=20,
        total_credits=1800,
        price=14.99,
    ),
    CreditPackage(
        package_id="2500",
        purchase_product_id="credits_2503",
        base_credits=2500,
        bonus_percent=25,
        total_credits=3125,
        price=24.99,
    ),
    CreditPackage(
        package_id="3500",
        purchase_product_id="credits_3503",
        base_credits=3500,
        bonus_percent=35,
        total_credits=4725,
        price=34.99,
    ),
    CreditPackage(
        package_id="5000",
        purchase_product_id="credits_5003",
        base_credits=5000,
        bonus_percent=45,
        total_credits=7250,
        price=49.99,
    ),
)


class CreditCatalog:
    """Immutable, ordered set of credit packages indexed by product and package id."""

    def __init__(self, packages: Iterable[CreditPackage]) -> None:
        self._packages = tuple(packages)

        by_product: dict[str, CreditPackage] = {}
        by_package: dict[str, CreditPackage] = {}
        for package in self._packages:
            if package.purchase_product_id in by_product:
                raise ValueError(f"Duplicate product ID: {package.purchase_product_id}")
            if package.package_id in by_package:
                raise ValueError(f"Duplicate package ID: {package.package_id}")
            by_product[package.purchase_product_id] = package
            by_package[package.package_id] = package

        self._by_product = MappingProxyType(by_product)
        self._by_package = MappingProxyType(by_package)

    @property
    def packages(self) -> tuple[CreditPackage, ...]:
        return self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def find_by_product_id(self, product_id: str) -> CreditPackage | None:
        """Exact match on the App Store product ID."""
        return self._by_product.get(product_id)

    def find_by_package_id(self, package_id: str) -> CreditPackage | None:
        return self._by_package.get(package_id)

    def available_for(self, purchased_products: Iterable[str]) -> tuple[CreditPackage, ...]:
        """Packages still purchasable: one-time offers already bought are hidden."""
        purchased = set(purchased_products)
        return tuple(
            package
            for package in self._packages
            if not (package.is_one_time_offer and package.purchase_product_id in purchased)
        )


def default_catalog() -> CreditCatalog:
    """Build the catalog of the packages sold in the App Store."""
    return CreditCatalog(DEFAULT_CREDIT_PACKAGES)
