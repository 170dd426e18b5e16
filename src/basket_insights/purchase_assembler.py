"""Purchase ingestion: validation, catalog reconciliation and persistence."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from .catalog import CatalogResolver
from .data_store import DataStore, DataStoreProtocol
from .errors import CatalogConflict, StorageUnavailable, ValidationFailure
from .item_normalizer import catalog_identity_key, normalize_scan_code
from .models import (
    REQUIRED_ITEM_FIELDS,
    PriceWarning,
    Purchase,
    PurchaseItem,
    PurchaseItemInput,
    PurchaseResult,
    ResolveResult,
)

logger = logging.getLogger("basket_insights.purchases")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_item(index: int, raw: Any) -> PurchaseItemInput:
    """Check a raw item map for presence and shape of every required field.

    Args:
        index: Position of the item in the submitted list
        raw: Plain field map

    Returns:
        Validated PurchaseItemInput

    Raises:
        ValidationFailure: Naming the index and the offending fields
    """
    if not isinstance(raw, Mapping):
        raise ValidationFailure(index, message=f"Item {index}: expected a field map")

    missing = [name for name in REQUIRED_ITEM_FIELDS if _is_blank(raw.get(name))]
    if missing:
        raise ValidationFailure(index, missing_fields=missing)

    try:
        return PurchaseItemInput.model_validate(dict(raw))
    except ValidationError as e:
        invalid = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise ValidationFailure(index, invalid_fields=invalid) from e


def enrich_item(item: PurchaseItemInput, resolution: ResolveResult) -> PurchaseItem:
    """Snapshot the resolved product, keeping the price and quantity actually paid."""
    product = resolution.product
    return PurchaseItem(
        product_id=product.id,
        name=product.name,
        brand=product.brand,
        unit_price_at_purchase=item.unit_price_at_purchase,
        quantity=item.quantity,
        package_size=product.package_size,
        price_per_unit=product.price_per_unit,
        unit_of_measure=product.unit_of_measure,
        scan_code=product.scan_code,
        category=product.category,
    )


class PurchaseAssembler:
    """Builds and records purchases from raw scanned items."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        resolver: CatalogResolver | None = None,
    ):
        """Initialize purchase assembler.

        Args:
            data_store: Store for purchases (and the catalog, unless a
                resolver is given)
            resolver: CatalogResolver instance
        """
        self.data_store = data_store or DataStore()
        self.resolver = resolver or CatalogResolver(self.data_store)

    async def _resolve_after(
        self,
        earlier: asyncio.Future[ResolveResult] | None,
        item: PurchaseItemInput,
    ) -> ResolveResult:
        if earlier is not None:
            await earlier
        return await self.resolver.resolve(item)

    async def _resolve_all(self, items: list[PurchaseItemInput]) -> list[ResolveResult]:
        """Resolve every item concurrently; results keep input order.

        Items repeating a scan code share one resolution. Items repeating
        name, brand and unit under another scan code wait for the earlier
        resolution and then resolve against the catalog it produced, so a
        single call never races itself into a duplicate catalog insert.
        """
        by_scan_code: dict[str, asyncio.Future[ResolveResult]] = {}
        by_identity: dict[str, asyncio.Future[ResolveResult]] = {}

        async def resolve_one(item: PurchaseItemInput) -> ResolveResult:
            scan_key = normalize_scan_code(item.scan_code)
            identity_key = catalog_identity_key(item.name, item.brand, item.unit_of_measure)

            if scan_key in by_scan_code:
                shared = await by_scan_code[scan_key]
                return ResolveResult(
                    product=shared.product,
                    created=False,
                    price_drifted=self.resolver.is_price_drift(
                        shared.product.unit_price, item.unit_price_at_purchase
                    ),
                )

            future = asyncio.ensure_future(
                self._resolve_after(by_identity.get(identity_key), item)
            )
            by_scan_code[scan_key] = future
            by_identity.setdefault(identity_key, future)
            return await future

        return list(await asyncio.gather(*(resolve_one(item) for item in items)))

    async def create_purchase(
        self,
        user_id: str,
        items: Sequence[Mapping[str, Any]],
        created_at: datetime | None = None,
    ) -> PurchaseResult:
        """Reconcile raw items against the catalog and record the purchase.

        Nothing is written unless every item validates and resolves. Catalog
        products created for earlier items are kept when a later item fails.

        Args:
            user_id: Owner of the purchase
            items: Raw item field maps, in scan order
            created_at: Purchase timestamp, defaults to now

        Returns:
            PurchaseResult with the stored purchase and any price warnings

        Raises:
            ValidationFailure: An item is missing or has invalid fields
            CatalogConflict: A catalog uniqueness rule was violated
            StorageUnavailable: The store could not be reached
        """
        if _is_blank(user_id):
            raise ValidationFailure(None, invalid_fields=["user_id"])
        if not items:
            raise ValidationFailure(None, message="Purchase must have at least one item")

        validated = [validate_item(index, raw) for index, raw in enumerate(items)]

        try:
            resolutions = await self._resolve_all(validated)
        except (CatalogConflict, StorageUnavailable) as e:
            logger.error("Purchase for user %s aborted: %s", user_id, e)
            raise

        enriched: list[PurchaseItem] = []
        warnings: list[PriceWarning] = []
        for index, (item, resolution) in enumerate(zip(validated, resolutions)):
            enriched.append(enrich_item(item, resolution))
            if resolution.price_drifted:
                warnings.append(
                    PriceWarning(
                        item_index=index,
                        scan_code=resolution.product.scan_code,
                        name=resolution.product.name,
                        catalog_price=resolution.product.unit_price,
                        submitted_price=item.unit_price_at_purchase,
                    )
                )

        purchase = Purchase.from_items(user_id, enriched, created_at=created_at)
        await asyncio.to_thread(self.data_store.save_purchase, purchase)

        created_count = sum(1 for r in resolutions if r.created)
        logger.info(
            "Recorded purchase %s for user %s: %d items, total %.2f, %d new products, %d warnings",
            purchase.id,
            user_id,
            len(enriched),
            purchase.total,
            created_count,
            len(warnings),
        )
        return PurchaseResult(purchase=purchase, price_warnings=warnings)

    async def get_purchase(self, user_id: str, purchase_id: UUID) -> Purchase | None:
        """Get one of a user's purchases."""
        return await asyncio.to_thread(self.data_store.get_purchase, user_id, purchase_id)

    async def list_purchases(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Purchase]:
        """List a user's purchases, newest first."""
        purchases = await asyncio.to_thread(self.data_store.list_purchases, user_id, start, end)
        purchases = sorted(purchases, key=lambda p: p.created_at, reverse=True)
        if limit is not None:
            purchases = purchases[:limit]
        return purchases
