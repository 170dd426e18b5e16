"""Shared test fixtures for Basket Insights."""

import json
import logging
from datetime import datetime

import pytest

from basket_insights.analytics import Analytics
from basket_insights.catalog import CatalogResolver
from basket_insights.data_store import DataStore
from basket_insights.models import Purchase, PurchaseItem
from basket_insights.purchase_assembler import PurchaseAssembler
from basket_insights.sqlite_store import SQLiteStore


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by the CLI so they never outlive a test."""
    yield
    logger = logging.getLogger("basket_insights")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture(params=["json", "sqlite"])
def any_store(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "sqlite":
        return SQLiteStore(db_path=tmp_path / "basket.db")
    return DataStore(data_dir=tmp_path / "json_data")


@pytest.fixture
def resolver(data_store):
    """Create a CatalogResolver with temporary storage."""
    return CatalogResolver(data_store=data_store)


@pytest.fixture
def assembler(data_store, resolver):
    """Create a PurchaseAssembler with temporary storage."""
    return PurchaseAssembler(data_store=data_store, resolver=resolver)


@pytest.fixture
def analytics(data_store):
    """Create an Analytics engine with a fixed clock."""
    return Analytics(data_store=data_store, clock=lambda: datetime(2025, 11, 20, 12, 0))


def make_raw_item(**overrides):
    """Raw purchase item field map as received from a scanner."""
    item = {
        "name": "Whole Milk",
        "brand": "Alpina",
        "unit_price_at_purchase": 4.5,
        "quantity": 1,
        "package_size": 1000,
        "unit_of_measure": "ml",
        "scan_code": "7702001000011",
        "category": "Dairy",
    }
    item.update(overrides)
    return item


def make_item(
    price: float = 5.0,
    quantity: int = 1,
    category: str = "Dairy",
    brand: str = "Alpina",
    name: str = "Whole Milk",
    scan_code: str = "7702001000011",
) -> PurchaseItem:
    """Purchase item snapshot for seeding history directly."""
    return PurchaseItem(
        name=name,
        brand=brand,
        unit_price_at_purchase=price,
        quantity=quantity,
        package_size=1000,
        unit_of_measure="ml",
        scan_code=scan_code,
        category=category,
    )


def make_purchase(user_id: str, created_at: datetime, items: list[PurchaseItem]) -> Purchase:
    """Purchase with a derived total at a fixed timestamp."""
    return Purchase.from_items(user_id, items, created_at=created_at)


@pytest.fixture
def sample_items():
    """Two distinct products as raw item maps."""
    return [
        make_raw_item(unit_price_at_purchase=10.5, quantity=2),
        make_raw_item(
            name="Rice",
            brand="Diana",
            unit_price_at_purchase=5,
            quantity=1,
            package_size=500,
            unit_of_measure="g",
            scan_code="7702511000022",
            category="Pantry",
        ),
    ]


@pytest.fixture
def sample_items_json(sample_items):
    """Sample items as JSON string."""
    return json.dumps({"items": sample_items})
