"""Basket Insights - Purchase tracking with catalog reconciliation and spending analytics."""

from .analytics import Analytics, resolve_range
from .catalog import CatalogResolver
from .config import ConfigManager
from .data_store import BackendType, create_data_store, DataStore
from .errors import BasketError, CatalogConflict, StorageUnavailable, ValidationFailure
from .models import (
    BrandStat,
    CategoryStat,
    DateRange,
    MonthComparison,
    MonthlyStat,
    Overview,
    PriceWarning,
    Product,
    Purchase,
    PurchaseItem,
    PurchaseItemInput,
    PurchaseResult,
    ResolveResult,
    Weekday,
    WeekdayStat,
)
from .output_formatter import OutputFormatter
from .purchase_assembler import PurchaseAssembler
from .sqlite_store import SQLiteStore

__version__ = "0.1.0"

__all__ = [
    "Analytics",
    "BackendType",
    "BasketError",
    "BrandStat",
    "CatalogConflict",
    "CatalogResolver",
    "CategoryStat",
    "ConfigManager",
    "create_data_store",
    "DataStore",
    "DateRange",
    "MonthComparison",
    "MonthlyStat",
    "OutputFormatter",
    "Overview",
    "PriceWarning",
    "Product",
    "Purchase",
    "PurchaseAssembler",
    "PurchaseItem",
    "PurchaseItemInput",
    "PurchaseResult",
    "resolve_range",
    "ResolveResult",
    "SQLiteStore",
    "StorageUnavailable",
    "ValidationFailure",
    "Weekday",
    "WeekdayStat",
]
