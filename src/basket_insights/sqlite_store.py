"""SQLite-based data persistence for Basket Insights.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from uuid import UUID

from .errors import CatalogConflict, StorageUnavailable
from .item_normalizer import catalog_identity_key, normalize_scan_code
from .models import Product, Purchase, PurchaseItem, as_local_naive

logger = logging.getLogger("basket_insights.store")


def adapt_uuid(uuid_val: UUID) -> str:
    """Adapt UUID to string for SQLite."""
    return str(uuid_val)


def adapt_datetime(dt: datetime) -> str:
    """Adapt datetime to a fixed-width ISO string so text comparison orders correctly."""
    return dt.isoformat(timespec="microseconds")


def convert_datetime(value: bytes) -> datetime:
    """Convert ISO string back to datetime from SQLite."""
    return datetime.fromisoformat(value.decode())


# Register adapters and converters
sqlite3.register_adapter(UUID, adapt_uuid)
sqlite3.register_adapter(datetime, adapt_datetime)
sqlite3.register_converter("DATETIME", convert_datetime)


class SQLiteStore:
    """Manages SQLite database persistence for catalog and purchase data."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/basket.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "basket.db"
        self.db_path = db_path
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self, operation: str = "query"):
        """Get a database connection with proper cleanup.

        Uniqueness violations surface as CatalogConflict, everything else the
        driver reports as StorageUnavailable.
        """
        try:
            conn = sqlite3.connect(
                self.db_path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                timeout=5.0,
            )
        except sqlite3.Error as e:
            logger.error("Cannot open %s: %s", self.db_path, e)
            raise StorageUnavailable(operation, e) from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("SQLite failure during %s: %s", operation, e)
            raise StorageUnavailable(operation, e) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection("init") as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Catalog
                CREATE TABLE IF NOT EXISTS products (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    brand TEXT NOT NULL,
                    unit_price REAL NOT NULL,
                    package_size REAL NOT NULL,
                    unit_of_measure TEXT NOT NULL,
                    scan_code TEXT NOT NULL UNIQUE,
                    category TEXT NOT NULL,
                    identity_key TEXT NOT NULL UNIQUE,
                    created_at DATETIME NOT NULL,
                    updated_at DATETIME NOT NULL
                );

                -- Purchases
                CREATE TABLE IF NOT EXISTS purchases (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    total REAL NOT NULL,
                    created_at DATETIME NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_purchases_user_created
                    ON purchases(user_id, created_at);

                -- Purchase line items, snapshot of the product at purchase time
                CREATE TABLE IF NOT EXISTS purchase_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    purchase_id TEXT NOT NULL REFERENCES purchases(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    product_id TEXT,
                    name TEXT NOT NULL,
                    brand TEXT NOT NULL,
                    unit_price_at_purchase REAL NOT NULL,
                    quantity INTEGER NOT NULL,
                    package_size REAL NOT NULL,
                    price_per_unit REAL,
                    unit_of_measure TEXT NOT NULL,
                    scan_code TEXT NOT NULL,
                    category TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_purchase_items_purchase
                    ON purchase_items(purchase_id, position);
            """)

            cursor = conn.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (self.SCHEMA_VERSION,),
                )

    # --- Catalog Operations ---

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        return Product(
            id=UUID(row["id"]),
            name=row["name"],
            brand=row["brand"],
            unit_price=row["unit_price"],
            package_size=row["package_size"],
            unit_of_measure=row["unit_of_measure"],
            scan_code=row["scan_code"],
            category=row["category"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_products(self) -> list[Product]:
        """List all catalog products sorted by name."""
        with self._get_connection("list_products") as conn:
            rows = conn.execute(
                "SELECT * FROM products ORDER BY name COLLATE NOCASE, scan_code"
            ).fetchall()
        return [self._row_to_product(row) for row in rows]

    def get_product(self, product_id: UUID) -> Product | None:
        """Get a catalog product by ID."""
        with self._get_connection("get_product") as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE id = ?", (str(product_id),)
            ).fetchone()
        return self._row_to_product(row) if row else None

    def get_product_by_scan_code(self, scan_code: str) -> Product | None:
        """Get a catalog product by exact scan code."""
        with self._get_connection("get_product_by_scan_code") as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE scan_code = ?",
                (normalize_scan_code(scan_code),),
            ).fetchone()
        return self._row_to_product(row) if row else None

    def find_product_by_identity(
        self, name: str, brand: str, unit_of_measure: str
    ) -> Product | None:
        """Find a product by name, brand and unit of measure, ignoring case."""
        with self._get_connection("find_product_by_identity") as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE identity_key = ?",
                (catalog_identity_key(name, brand, unit_of_measure),),
            ).fetchone()
        return self._row_to_product(row) if row else None

    def insert_product(self, product: Product) -> Product:
        """Insert a new catalog product.

        Raises:
            CatalogConflict: If the scan code or identity key is already taken
        """
        try:
            with self._get_connection("insert_product") as conn:
                conn.execute(
                    """
                    INSERT INTO products (
                        id, name, brand, unit_price, package_size, unit_of_measure,
                        scan_code, category, identity_key, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        product.id,
                        product.name,
                        product.brand,
                        product.unit_price,
                        product.package_size,
                        product.unit_of_measure,
                        product.scan_code,
                        product.category,
                        catalog_identity_key(
                            product.name, product.brand, product.unit_of_measure
                        ),
                        product.created_at,
                        product.updated_at,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise CatalogConflict(product.scan_code, str(e)) from e
        return product

    # --- Purchase Operations ---

    def save_purchase(self, purchase: Purchase) -> UUID:
        """Save a purchase and its items in one transaction."""
        with self._get_connection("save_purchase") as conn:
            conn.execute(
                "INSERT INTO purchases (id, user_id, total, created_at) VALUES (?, ?, ?, ?)",
                (purchase.id, purchase.user_id, purchase.total, purchase.created_at),
            )
            conn.executemany(
                """
                INSERT INTO purchase_items (
                    purchase_id, position, product_id, name, brand,
                    unit_price_at_purchase, quantity, package_size, price_per_unit,
                    unit_of_measure, scan_code, category
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        purchase.id,
                        position,
                        item.product_id,
                        item.name,
                        item.brand,
                        item.unit_price_at_purchase,
                        item.quantity,
                        item.package_size,
                        item.price_per_unit,
                        item.unit_of_measure,
                        item.scan_code,
                        item.category,
                    )
                    for position, item in enumerate(purchase.items)
                ],
            )
        return purchase.id

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> PurchaseItem:
        return PurchaseItem(
            product_id=UUID(row["product_id"]) if row["product_id"] else None,
            name=row["name"],
            brand=row["brand"],
            unit_price_at_purchase=row["unit_price_at_purchase"],
            quantity=row["quantity"],
            package_size=row["package_size"],
            price_per_unit=row["price_per_unit"],
            unit_of_measure=row["unit_of_measure"],
            scan_code=row["scan_code"],
            category=row["category"],
        )

    def _load_purchases(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Purchase]:
        """Attach items to purchase rows, preserving row order."""
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        item_rows = conn.execute(
            f"SELECT * FROM purchase_items WHERE purchase_id IN ({placeholders}) "
            "ORDER BY purchase_id, position",
            ids,
        ).fetchall()

        items_by_purchase: dict[str, list[PurchaseItem]] = {pid: [] for pid in ids}
        for item_row in item_rows:
            items_by_purchase[item_row["purchase_id"]].append(self._row_to_item(item_row))

        return [
            Purchase(
                id=UUID(row["id"]),
                user_id=row["user_id"],
                items=items_by_purchase[row["id"]],
                total=row["total"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def get_purchase(self, user_id: str, purchase_id: UUID) -> Purchase | None:
        """Load a purchase owned by a user."""
        with self._get_connection("get_purchase") as conn:
            rows = conn.execute(
                "SELECT * FROM purchases WHERE id = ? AND user_id = ?",
                (str(purchase_id), user_id),
            ).fetchall()
            purchases = self._load_purchases(conn, rows)
        return purchases[0] if purchases else None

    @staticmethod
    def _range_clause(
        user_id: str, start: datetime | None, end: datetime | None
    ) -> tuple[str, list]:
        clause = "user_id = ?"
        params: list = [user_id]
        if start is not None:
            clause += " AND created_at >= ?"
            params.append(as_local_naive(start))
        if end is not None:
            clause += " AND created_at <= ?"
            params.append(as_local_naive(end))
        return clause, params

    def list_purchases(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Purchase]:
        """List a user's purchases within an inclusive range, oldest first."""
        clause, params = self._range_clause(user_id, start, end)
        with self._get_connection("list_purchases") as conn:
            rows = conn.execute(
                f"SELECT * FROM purchases WHERE {clause} ORDER BY created_at",
                params,
            ).fetchall()
            return self._load_purchases(conn, rows)

    def list_purchase_dates(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[datetime]:
        """Creation timestamps of a user's purchases, ascending."""
        clause, params = self._range_clause(user_id, start, end)
        with self._get_connection("list_purchase_dates") as conn:
            rows = conn.execute(
                f"SELECT created_at FROM purchases WHERE {clause} ORDER BY created_at",
                params,
            ).fetchall()
        return [row["created_at"] for row in rows]
