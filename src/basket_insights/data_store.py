"""Data persistence for Basket Insights.

This module provides data persistence with support for JSON (default) or SQLite backends.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

from pydantic import ValidationError

from .errors import CatalogConflict, StorageUnavailable
from .item_normalizer import catalog_identity_key, normalize_scan_code
from .models import Product, Purchase, as_local_naive

logger = logging.getLogger("basket_insights.store")


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"


class DataStoreProtocol(Protocol):
    """Protocol defining the data store interface."""

    def get_product(self, product_id: UUID) -> Product | None: ...
    def get_product_by_scan_code(self, scan_code: str) -> Product | None: ...
    def find_product_by_identity(
        self, name: str, brand: str, unit_of_measure: str
    ) -> Product | None: ...
    def insert_product(self, product: Product) -> Product: ...
    def list_products(self) -> list[Product]: ...
    def save_purchase(self, purchase: Purchase) -> UUID: ...
    def get_purchase(self, user_id: str, purchase_id: UUID) -> Purchase | None: ...
    def list_purchases(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Purchase]: ...
    def list_purchase_dates(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[datetime]: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def in_range(moment: datetime, start: datetime | None, end: datetime | None) -> bool:
    """Inclusive range check with open ends."""
    if start is not None and moment < as_local_naive(start):
        return False
    if end is not None and moment > as_local_naive(end):
        return False
    return True


@contextmanager
def storage_errors(operation: str):
    """Translate file and decoding failures into StorageUnavailable."""
    try:
        yield
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error("Storage failure during %s: %s", operation, e)
        raise StorageUnavailable(operation, e) from e


class DataStore:
    """Manages JSON file persistence for catalog and purchase data."""

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._catalog_lock = threading.RLock()
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "purchases").mkdir(exist_ok=True)

    def _catalog_path(self) -> Path:
        """Path to the catalog file."""
        return self.data_dir / "catalog.json"

    def _purchase_path(self, purchase_id: str | UUID) -> Path:
        """Path to a purchase file."""
        return self.data_dir / "purchases" / f"{purchase_id}.json"

    @staticmethod
    def _write_atomic(path: Path, payload: Any) -> None:
        """Write JSON to a temp file and move it into place."""
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(payload, f, cls=JSONEncoder, indent=2)
        os.replace(tmp_path, path)

    # --- Catalog Operations ---

    def _load_catalog(self) -> list[Product]:
        path = self._catalog_path()
        if not path.exists():
            return []

        with open(path) as f:
            data = json.load(f)

        return [Product(**product_data) for product_data in data.get("products", [])]

    def list_products(self) -> list[Product]:
        """List all catalog products.

        Returns:
            Products sorted by name
        """
        with storage_errors("list_products"), self._catalog_lock:
            products = self._load_catalog()
        return sorted(products, key=lambda p: (p.name.lower(), p.scan_code))

    def get_product(self, product_id: UUID) -> Product | None:
        """Get a catalog product by ID."""
        with storage_errors("get_product"), self._catalog_lock:
            for product in self._load_catalog():
                if product.id == product_id:
                    return product
        return None

    def get_product_by_scan_code(self, scan_code: str) -> Product | None:
        """Get a catalog product by exact scan code.

        Args:
            scan_code: Barcode or other machine-readable identifier

        Returns:
            Product if found, None otherwise
        """
        target = normalize_scan_code(scan_code)
        with storage_errors("get_product_by_scan_code"), self._catalog_lock:
            for product in self._load_catalog():
                if product.scan_code == target:
                    return product
        return None

    def find_product_by_identity(
        self, name: str, brand: str, unit_of_measure: str
    ) -> Product | None:
        """Find a product by name, brand and unit of measure, ignoring case."""
        target = catalog_identity_key(name, brand, unit_of_measure)
        with storage_errors("find_product_by_identity"), self._catalog_lock:
            for product in self._load_catalog():
                key = catalog_identity_key(product.name, product.brand, product.unit_of_measure)
                if key == target:
                    return product
        return None

    def insert_product(self, product: Product) -> Product:
        """Insert a new catalog product.

        Args:
            product: Product to insert

        Returns:
            The stored product

        Raises:
            CatalogConflict: If the scan code or identity key is already taken
        """
        identity = catalog_identity_key(product.name, product.brand, product.unit_of_measure)
        with storage_errors("insert_product"), self._catalog_lock:
            products = self._load_catalog()
            for existing in products:
                if existing.scan_code == product.scan_code:
                    raise CatalogConflict(product.scan_code)
                if (
                    catalog_identity_key(existing.name, existing.brand, existing.unit_of_measure)
                    == identity
                ):
                    raise CatalogConflict(product.scan_code, "same name, brand and unit")

            products.append(product)
            self._write_atomic(
                self._catalog_path(),
                {"version": "1.0", "products": [p.model_dump() for p in products]},
            )

        return product

    # --- Purchase Operations ---

    def save_purchase(self, purchase: Purchase) -> UUID:
        """Save a purchase as a single document.

        Args:
            purchase: Purchase to save

        Returns:
            Purchase ID
        """
        with storage_errors("save_purchase"):
            self._write_atomic(self._purchase_path(purchase.id), purchase.model_dump())
        return purchase.id

    def _load_purchase_file(self, path: Path) -> Purchase:
        with open(path) as f:
            return Purchase(**json.load(f))

    def get_purchase(self, user_id: str, purchase_id: UUID) -> Purchase | None:
        """Load a purchase owned by a user.

        Returns:
            Purchase if found and owned by user_id, None otherwise
        """
        path = self._purchase_path(purchase_id)
        with storage_errors("get_purchase"):
            if not path.exists():
                return None
            purchase = self._load_purchase_file(path)

        if purchase.user_id != user_id:
            return None
        return purchase

    def list_purchases(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Purchase]:
        """List a user's purchases within an inclusive range.

        Returns:
            Purchases sorted by creation time, oldest first
        """
        purchases_dir = self.data_dir / "purchases"
        with storage_errors("list_purchases"):
            if not purchases_dir.exists():
                return []
            purchases = [
                self._load_purchase_file(path) for path in purchases_dir.glob("*.json")
            ]

        matching = [
            p for p in purchases if p.user_id == user_id and in_range(p.created_at, start, end)
        ]
        return sorted(matching, key=lambda p: p.created_at)

    def list_purchase_dates(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[datetime]:
        """Creation timestamps of a user's purchases, ascending."""
        return [p.created_at for p in self.list_purchases(user_id, start, end)]


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> DataStoreProtocol:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json or sqlite)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore or SQLiteStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/basket.db")
        )
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "basket.db"

        return SQLiteStore(db_path=db_path)
    else:
        return DataStore(data_dir=data_dir)
