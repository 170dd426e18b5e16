"""Spending analytics over a user's purchase history."""

import asyncio
import calendar
import logging
import math
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, time, timedelta

from .data_store import DataStore, DataStoreProtocol
from .models import (
    NO_BRAND,
    UNCATEGORIZED,
    BrandStat,
    CategoryStat,
    DateRange,
    MonthComparison,
    MonthlyStat,
    Overview,
    Purchase,
    Weekday,
    WeekdayStat,
    as_local_naive,
)

logger = logging.getLogger("basket_insights.analytics")

DEFAULT_LOOKBACK_MONTHS = 5
DEFAULT_TOP_BRANDS = 10

_SUNDAY_FIRST = list(Weekday)
_END_OF_DAY = time(23, 59, 59, 999000)
_ONE_DAY = timedelta(days=1)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def resolve_range(
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
) -> DateRange:
    """Resolve an optional window into concrete inclusive bounds.

    ``end`` defaults to now and is pushed to the end of its day. ``start``
    defaults to the first day of the month ``lookback_months`` before ``end``
    and is pulled to the start of its day. Aware bounds are read in local time.
    """
    anchor = as_local_naive(end or now or datetime.now())
    range_end = datetime.combine(anchor.date(), _END_OF_DAY)

    if start is None:
        year, month = _shift_month(anchor.year, anchor.month, -lookback_months)
        range_start = datetime(year, month, 1)
    else:
        range_start = datetime.combine(as_local_naive(start).date(), time.min)

    return DateRange(start=range_start, end=range_end)


def month_label(moment: datetime) -> str:
    """Format a timestamp's calendar month as YYYY-MM."""
    return f"{moment.year:04d}-{moment.month:02d}"


def weekday_of(moment: datetime) -> Weekday:
    """Weekday of a timestamp using Sunday-first naming."""
    return _SUNDAY_FIRST[(moment.weekday() + 1) % 7]


def monthly_series(purchases: list[Purchase]) -> list[MonthlyStat]:
    """Purchase totals and item quantities per calendar month, ascending."""
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)

    for purchase in purchases:
        label = month_label(purchase.created_at)
        totals[label] += purchase.total
        counts[label] += purchase.items_count

    return [
        MonthlyStat(month=label, total=round(totals[label], 2), items_count=counts[label])
        for label in sorted(totals)
    ]


def category_breakdown(purchases: list[Purchase]) -> list[CategoryStat]:
    """Spending per item category, largest first."""
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)

    for purchase in purchases:
        for item in purchase.items:
            category = item.category.strip() or UNCATEGORIZED
            totals[category] += item.line_total
            counts[category] += item.quantity

    ordered = sorted(totals, key=lambda c: (-totals[c], c))
    return [
        CategoryStat(category=c, total=round(totals[c], 2), items_count=counts[c])
        for c in ordered
    ]


def weekday_breakdown(purchases: list[Purchase]) -> list[WeekdayStat]:
    """Spending per day of the week, largest first."""
    totals: dict[Weekday, float] = defaultdict(float)
    counts: dict[Weekday, int] = defaultdict(int)

    for purchase in purchases:
        day = weekday_of(purchase.created_at)
        totals[day] += purchase.total
        counts[day] += 1

    ordered = sorted(totals, key=lambda d: (-totals[d], _SUNDAY_FIRST.index(d)))
    return [
        WeekdayStat(
            day=day,
            day_index=_SUNDAY_FIRST.index(day),
            total=round(totals[day], 2),
            purchase_count=counts[day],
        )
        for day in ordered
    ]


def brand_breakdown(purchases: list[Purchase], limit: int = DEFAULT_TOP_BRANDS) -> list[BrandStat]:
    """Top brands by spending."""
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)

    for purchase in purchases:
        for item in purchase.items:
            brand = item.brand.strip() or NO_BRAND
            totals[brand] += item.line_total
            counts[brand] += item.quantity

    ordered = sorted(totals, key=lambda b: (-totals[b], b))[:limit]
    return [BrandStat(brand=b, total=round(totals[b], 2), items_count=counts[b]) for b in ordered]


def month_over_month(monthly: list[MonthlyStat]) -> MonthComparison:
    """Compare the latest month of a series with the one before it."""
    current = monthly[-1] if monthly else None
    previous = monthly[-2] if len(monthly) >= 2 else None

    current_total = current.total if current else 0.0
    previous_total = previous.total if previous else 0.0

    if previous_total == 0:
        change = 100.0 if current_total > 0 else 0.0
    else:
        change = (current_total - previous_total) / previous_total * 100

    return MonthComparison(
        current_month=current.month if current else None,
        current_total=current_total,
        previous_month=previous.month if previous else None,
        previous_total=previous_total,
        percentage_change=round(change, 2),
    )


def average_purchase_interval(dates: list[datetime]) -> float:
    """Average whole days between consecutive purchases.

    Each gap is rounded up to whole days. Fewer than two purchases give 0.
    """
    if len(dates) < 2:
        return 0.0

    ordered = sorted(dates)
    gaps = [
        math.ceil(abs((later - earlier) / _ONE_DAY))
        for earlier, later in zip(ordered, ordered[1:])
    ]
    return round(sum(gaps) / len(gaps), 2)


def spending_projection(monthly: list[MonthlyStat], now: datetime) -> int:
    """Project this month's spending from the month-to-date total.

    Only applies when the series ends in the current calendar month.
    """
    if not monthly or monthly[-1].month != month_label(now):
        return 0

    days_in_month = calendar.monthrange(now.year, now.month)[1]
    projected = monthly[-1].total / now.day * days_in_month
    return int(math.floor(projected + 0.5))


class Analytics:
    """Builds the spending overview for one user and one date range."""

    def __init__(
        self,
        data_store: DataStoreProtocol | None = None,
        lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
        top_brands: int = DEFAULT_TOP_BRANDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize analytics.

        Args:
            data_store: Store holding purchase history (read only)
            lookback_months: Months covered when no start date is given
            top_brands: Number of brands kept in the brand breakdown
            clock: Source of the current time
        """
        self.data_store = data_store or DataStore()
        self.lookback_months = lookback_months
        self.top_brands = top_brands
        self.clock = clock

    async def get_overview(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Overview:
        """Compute every analytics view for a user's purchases in a window.

        Args:
            user_id: Owner of the purchases
            start: Inclusive start, defaults to the lookback window
            end: Inclusive end, defaults to today

        Returns:
            Overview with the resolved range and all views. An empty window
            yields empty lists and zero values.
        """
        now = self.clock()
        date_range = resolve_range(start, end, now=now, lookback_months=self.lookback_months)

        purchases, dates = await asyncio.gather(
            asyncio.to_thread(
                self.data_store.list_purchases, user_id, date_range.start, date_range.end
            ),
            asyncio.to_thread(
                self.data_store.list_purchase_dates, user_id, date_range.start, date_range.end
            ),
        )
        logger.debug(
            "Overview for user %s from %s to %s over %d purchases",
            user_id,
            date_range.start,
            date_range.end,
            len(purchases),
        )

        monthly = monthly_series(purchases)

        return Overview(
            range=date_range,
            monthly=monthly,
            categories=category_breakdown(purchases),
            weekdays=weekday_breakdown(purchases),
            brands=brand_breakdown(purchases, limit=self.top_brands),
            month_comparison=month_over_month(monthly),
            average_days_between_purchases=average_purchase_interval(dates),
            projected_month_total=spending_projection(monthly, now),
        )
