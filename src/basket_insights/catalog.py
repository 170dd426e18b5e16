"""Catalog reconciliation for incoming purchase items."""

import asyncio
import logging

from .data_store import DataStore, DataStoreProtocol
from .item_normalizer import normalize_scan_code
from .models import Product, PurchaseItemInput, ResolveResult

logger = logging.getLogger("basket_insights.catalog")

PRICE_DRIFT_THRESHOLD = 0.01


class CatalogResolver:
    """Matches purchase items to catalog products, creating them on first sighting."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        price_drift_threshold: float = PRICE_DRIFT_THRESHOLD,
    ):
        """Initialize catalog resolver.

        Args:
            data_store: Store holding the shared catalog
            price_drift_threshold: Absolute price difference tolerated before
                an item is flagged as drifted
        """
        self.data_store = data_store or DataStore()
        self.price_drift_threshold = price_drift_threshold

    def is_price_drift(self, catalog_price: float, submitted_price: float) -> bool:
        """Check whether a paid price differs materially from the catalog price.

        The difference is rounded before comparing so binary float noise
        (1.01 - 1.00 == 0.010000000000000009) never counts as drift.
        """
        return round(abs(catalog_price - submitted_price), 6) > self.price_drift_threshold

    async def find_existing(self, item: PurchaseItemInput) -> Product | None:
        """Look up a product by scan code, then by name, brand and unit."""
        product = await asyncio.to_thread(
            self.data_store.get_product_by_scan_code, item.scan_code
        )
        if product is not None:
            return product

        return await asyncio.to_thread(
            self.data_store.find_product_by_identity,
            item.name,
            item.brand,
            item.unit_of_measure,
        )

    async def resolve(self, item: PurchaseItemInput) -> ResolveResult:
        """Resolve an item to a catalog product.

        Existing products are never repriced; a material price difference is
        only reported through ``price_drifted``.

        Args:
            item: Validated purchase item

        Returns:
            ResolveResult with the product and whether it was created

        Raises:
            CatalogConflict: A concurrent writer created the same product first
            StorageUnavailable: The store could not be reached
        """
        product = await self.find_existing(item)

        if product is not None:
            drifted = self.is_price_drift(product.unit_price, item.unit_price_at_purchase)
            if drifted:
                logger.info(
                    "Price drift for %s: catalog %.2f, submitted %.2f",
                    product.scan_code,
                    product.unit_price,
                    item.unit_price_at_purchase,
                )
            return ResolveResult(product=product, created=False, price_drifted=drifted)

        new_product = Product(
            name=item.name.strip(),
            brand=item.brand.strip(),
            unit_price=item.unit_price_at_purchase,
            package_size=item.package_size,
            unit_of_measure=item.unit_of_measure.strip(),
            scan_code=normalize_scan_code(item.scan_code),
            category=item.category.strip(),
        )
        stored = await asyncio.to_thread(self.data_store.insert_product, new_product)
        logger.info("Created catalog product %s (%s)", stored.scan_code, stored.name)
        return ResolveResult(product=stored, created=True, price_drifted=False)
