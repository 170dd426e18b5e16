"""Core data models for Basket Insights."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

UNCATEGORIZED = "uncategorized"
NO_BRAND = "no brand"

REQUIRED_ITEM_FIELDS = (
    "name",
    "brand",
    "unit_price_at_purchase",
    "package_size",
    "unit_of_measure",
    "scan_code",
    "category",
    "quantity",
)


def as_local_naive(moment: datetime) -> datetime:
    """Convert an aware timestamp to naive local time; naive values pass through."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


class Weekday(str, Enum):
    """Weekday names, Sunday first."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


class Product(BaseModel):
    """A catalog entry."""

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    brand: str
    unit_price: float = Field(ge=0)
    package_size: float = Field(gt=0)
    unit_of_measure: str
    scan_code: str
    category: str
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def price_per_unit(self) -> float | None:
        """Price per unit of measure, absent for free items."""
        if self.unit_price > 0 and self.package_size > 0:
            return self.unit_price / self.package_size
        return None


class PurchaseItemInput(BaseModel):
    """A raw purchase item after presence and shape checks."""

    product_id: UUID | None = None
    name: str = Field(min_length=1)
    brand: str = Field(min_length=1)
    unit_price_at_purchase: float = Field(ge=0)
    quantity: int = Field(ge=1)
    package_size: float = Field(gt=0)
    unit_of_measure: str = Field(min_length=1)
    scan_code: str = Field(min_length=1)
    category: str = Field(min_length=1)


class PurchaseItem(BaseModel):
    """A purchased item with a snapshot of its catalog product."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID | None = None
    name: str
    brand: str
    unit_price_at_purchase: float = Field(ge=0)
    quantity: int = Field(ge=1)
    package_size: float
    price_per_unit: float | None = None
    unit_of_measure: str
    scan_code: str
    category: str

    @property
    def line_total(self) -> float:
        """Amount paid for this line."""
        return self.unit_price_at_purchase * self.quantity


class Purchase(BaseModel):
    """A recorded purchase. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    items: list[PurchaseItem] = Field(min_length=1)
    total: float
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("created_at")
    @classmethod
    def _store_local_time(cls, value: datetime) -> datetime:
        return as_local_naive(value)

    @classmethod
    def from_items(
        cls,
        user_id: str,
        items: list[PurchaseItem],
        created_at: datetime | None = None,
    ) -> "Purchase":
        """Build a purchase whose total is derived from its items."""
        total = round(sum(item.line_total for item in items), 2)
        if created_at is None:
            return cls(user_id=user_id, items=items, total=total)
        return cls(user_id=user_id, items=items, total=total, created_at=created_at)

    @property
    def items_count(self) -> int:
        """Total quantity across all items."""
        return sum(item.quantity for item in self.items)


class ResolveResult(BaseModel):
    """Outcome of reconciling one item against the catalog."""

    product: Product
    created: bool
    price_drifted: bool


class PriceWarning(BaseModel):
    """Catalog price differs from the price actually paid."""

    item_index: int
    scan_code: str
    name: str
    catalog_price: float
    submitted_price: float


class PurchaseResult(BaseModel):
    """Result of ingesting a purchase."""

    purchase: Purchase
    price_warnings: list[PriceWarning] = Field(default_factory=list)

    @property
    def id(self) -> UUID:
        return self.purchase.id

    @property
    def total(self) -> float:
        return self.purchase.total

    @property
    def created_at(self) -> datetime:
        return self.purchase.created_at


class DateRange(BaseModel):
    """Inclusive analytics window."""

    start: datetime
    end: datetime


class MonthlyStat(BaseModel):
    """Spending for one calendar month."""

    month: str  # "YYYY-MM"
    total: float
    items_count: int


class CategoryStat(BaseModel):
    """Spending for one category."""

    category: str
    total: float
    items_count: int


class WeekdayStat(BaseModel):
    """Spending for one day of the week."""

    day: Weekday
    day_index: int  # 0 = Sunday
    total: float
    purchase_count: int


class BrandStat(BaseModel):
    """Spending for one brand."""

    brand: str
    total: float
    items_count: int


class MonthComparison(BaseModel):
    """Latest month against the one before it."""

    current_month: str | None = None
    current_total: float = 0.0
    previous_month: str | None = None
    previous_total: float = 0.0
    percentage_change: float = 0.0


class Overview(BaseModel):
    """All analytics views for one user and one date range."""

    range: DateRange
    monthly: list[MonthlyStat] = Field(default_factory=list)
    categories: list[CategoryStat] = Field(default_factory=list)
    weekdays: list[WeekdayStat] = Field(default_factory=list)
    brands: list[BrandStat] = Field(default_factory=list)
    month_comparison: MonthComparison = Field(default_factory=MonthComparison)
    average_days_between_purchases: float = 0.0
    projected_month_total: int = 0
