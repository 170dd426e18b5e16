"""Tests for analytics module."""

from datetime import datetime, timezone

import pytest

from basket_insights.analytics import (
    Analytics,
    average_purchase_interval,
    brand_breakdown,
    category_breakdown,
    month_over_month,
    monthly_series,
    resolve_range,
    spending_projection,
    weekday_breakdown,
    weekday_of,
)
from basket_insights.models import NO_BRAND, UNCATEGORIZED, MonthlyStat, Weekday
from basket_insights.purchase_assembler import PurchaseAssembler
from basket_insights.sqlite_store import SQLiteStore
from conftest import make_item, make_purchase, make_raw_item

NOW = datetime(2025, 11, 20, 12, 0)


@pytest.fixture
def history(data_store):
    """Three purchases over two months for user-1, one for user-2."""
    purchases = [
        make_purchase(
            "user-1",
            datetime(2025, 10, 5, 9, 0),
            [make_item(price=5, quantity=2, category="Dairy", brand="Alpina")],
        ),
        make_purchase(
            "user-1",
            datetime(2025, 11, 10, 14, 0),
            [
                make_item(price=5, quantity=1, category="Pantry", brand="Diana", name="Rice"),
                make_item(price=3, quantity=2, category="Dairy", brand="Alpina"),
            ],
        ),
        make_purchase(
            "user-1",
            datetime(2025, 11, 15, 18, 30),
            [make_item(price=4, quantity=1, category="Bakery", brand="Bimbo", name="Bread")],
        ),
        make_purchase(
            "user-2",
            datetime(2025, 11, 12, 10, 0),
            [make_item(price=100, quantity=1)],
        ),
    ]
    for purchase in purchases:
        data_store.save_purchase(purchase)
    return purchases


class TestResolveRange:
    """Tests for date range resolution."""

    def test_defaults(self):
        """Default window starts five months back on the first of the month."""
        date_range = resolve_range(now=NOW)

        assert date_range.start == datetime(2025, 6, 1)
        assert date_range.end == datetime(2025, 11, 20, 23, 59, 59, 999000)

    def test_default_start_wraps_year(self):
        """Lookback crosses into the previous year."""
        date_range = resolve_range(now=datetime(2026, 2, 10))

        assert date_range.start == datetime(2025, 9, 1)

    def test_explicit_bounds_cover_whole_days(self):
        """Start moves to midnight and end to the last millisecond."""
        date_range = resolve_range(
            start=datetime(2025, 10, 3, 15, 0), end=datetime(2025, 10, 9, 8, 0), now=NOW
        )

        assert date_range.start == datetime(2025, 10, 3)
        assert date_range.end == datetime(2025, 10, 9, 23, 59, 59, 999000)

    def test_default_start_follows_explicit_end(self):
        """Lookback is measured from the given end, not from now."""
        date_range = resolve_range(end=datetime(2025, 3, 15), now=NOW)

        assert date_range.start == datetime(2024, 10, 1)

    def test_custom_lookback(self):
        """Lookback length is configurable."""
        assert resolve_range(now=NOW, lookback_months=1).start == datetime(2025, 10, 1)


class TestViews:
    """Tests for the individual views."""

    def test_monthly_series(self, history):
        """Purchases group by calendar month, ascending."""
        user_purchases = [p for p in history if p.user_id == "user-1"]

        monthly = monthly_series(user_purchases)
        assert [(m.month, m.total, m.items_count) for m in monthly] == [
            ("2025-10", 10.0, 2),
            ("2025-11", 15.0, 5),
        ]

    def test_category_breakdown_sorted(self):
        """Categories come largest first; ties break by name."""
        purchase = make_purchase(
            "user-1",
            NOW,
            [
                make_item(price=2, category="Snacks"),
                make_item(price=7, category="Dairy"),
                make_item(price=2, category="Bakery"),
            ],
        )

        categories = category_breakdown([purchase])
        assert [c.category for c in categories] == ["Dairy", "Bakery", "Snacks"]

    def test_blank_category_is_uncategorized(self):
        """Items without a category are grouped under the sentinel."""
        purchase = make_purchase("user-1", NOW, [make_item(price=3, category=" ")])

        assert category_breakdown([purchase])[0].category == UNCATEGORIZED

    def test_blank_brand_is_no_brand(self):
        """Items without a brand are grouped under the sentinel."""
        purchase = make_purchase("user-1", NOW, [make_item(price=3, brand="")])

        assert brand_breakdown([purchase])[0].brand == NO_BRAND

    def test_brand_breakdown_truncated(self):
        """Only the top brands by spending are kept."""
        items = [make_item(price=i + 1, brand=f"Brand {i:02d}") for i in range(12)]
        purchase = make_purchase("user-1", NOW, items)

        brands = brand_breakdown([purchase])
        assert len(brands) == 10
        assert brands[0].brand == "Brand 11"
        assert "Brand 00" not in [b.brand for b in brands]

        assert len(brand_breakdown([purchase], limit=3)) == 3

    def test_weekday_names_sunday_first(self):
        """Sunday is day zero."""
        assert weekday_of(datetime(2025, 10, 5)) == Weekday.SUNDAY
        assert weekday_of(datetime(2025, 10, 6)) == Weekday.MONDAY
        assert weekday_of(datetime(2025, 10, 11)) == Weekday.SATURDAY

    def test_weekday_breakdown(self, history):
        """Days come largest first with Sunday-first indexes."""
        user_purchases = [p for p in history if p.user_id == "user-1"]

        weekdays = weekday_breakdown(user_purchases)
        assert [(w.day, w.day_index, w.total, w.purchase_count) for w in weekdays] == [
            (Weekday.MONDAY, 1, 11.0, 1),
            (Weekday.SUNDAY, 0, 10.0, 1),
            (Weekday.SATURDAY, 6, 4.0, 1),
        ]


class TestMonthOverMonth:
    """Tests for month-over-month comparison."""

    def test_normal_change(self):
        """Change is relative to the previous month."""
        comparison = month_over_month(
            [MonthlyStat(month="2025-10", total=10, items_count=1),
             MonthlyStat(month="2025-11", total=15, items_count=1)]
        )

        assert comparison.current_month == "2025-11"
        assert comparison.previous_month == "2025-10"
        assert comparison.percentage_change == 50.0

    def test_decrease_is_negative(self):
        """Spending less gives a negative change."""
        comparison = month_over_month(
            [MonthlyStat(month="2025-10", total=30, items_count=1),
             MonthlyStat(month="2025-11", total=10, items_count=1)]
        )

        assert comparison.percentage_change == -66.67

    def test_from_nothing_is_hundred_percent(self):
        """Any spending after a zero month is a 100% change."""
        comparison = month_over_month(
            [MonthlyStat(month="2025-10", total=0, items_count=1),
             MonthlyStat(month="2025-11", total=10, items_count=1)]
        )

        assert comparison.percentage_change == 100.0

    def test_single_month(self):
        """Without a previous month the change is 100% if anything was spent."""
        comparison = month_over_month([MonthlyStat(month="2025-11", total=8, items_count=1)])

        assert comparison.previous_month is None
        assert comparison.percentage_change == 100.0

    def test_zero_over_zero(self):
        """No spending in either month is no change."""
        assert month_over_month([]).percentage_change == 0.0
        assert (
            month_over_month([MonthlyStat(month="2025-11", total=0, items_count=1)])
            .percentage_change
            == 0.0
        )


class TestIntervalAndProjection:
    """Tests for purchase interval and spending projection."""

    def test_interval_rounds_gaps_up(self):
        """Partial days count as whole days."""
        dates = [datetime(2025, 1, 1, 0, 0), datetime(2025, 1, 2, 1, 0)]

        assert average_purchase_interval(dates) == 2.0

    def test_interval_averages_gaps(self):
        """Gaps are averaged in chronological order."""
        dates = [datetime(2025, 11, 15), datetime(2025, 10, 5), datetime(2025, 11, 10)]

        assert average_purchase_interval(dates) == 20.5

    def test_interval_needs_two_purchases(self):
        """One purchase has no interval."""
        assert average_purchase_interval([]) == 0.0
        assert average_purchase_interval([NOW]) == 0.0

    def test_projection_scales_month_to_date(self):
        """Month-to-date spending is scaled to the whole month, rounded half up."""
        monthly = [MonthlyStat(month="2025-11", total=15, items_count=1)]

        assert spending_projection(monthly, NOW) == 23

    def test_projection_without_current_month(self):
        """Nothing spent this month projects to zero."""
        monthly = [MonthlyStat(month="2025-10", total=15, items_count=1)]

        assert spending_projection(monthly, NOW) == 0
        assert spending_projection([], NOW) == 0


class TestOverview:
    """Tests for Analytics.get_overview."""

    @pytest.mark.asyncio
    async def test_overview_default_range(self, analytics, history):
        """Default window covers the whole history of the user."""
        overview = await analytics.get_overview("user-1")

        assert overview.range.start == datetime(2025, 6, 1)
        assert [(m.month, m.total) for m in overview.monthly] == [
            ("2025-10", 10.0),
            ("2025-11", 15.0),
        ]
        assert overview.month_comparison.percentage_change == 50.0
        assert overview.average_days_between_purchases == 20.5
        assert overview.projected_month_total == 23

    @pytest.mark.asyncio
    async def test_overview_isolates_users(self, analytics, history):
        """Another user's purchases never appear."""
        overview = await analytics.get_overview("user-2")

        assert [(m.month, m.total) for m in overview.monthly] == [("2025-11", 100.0)]
        assert overview.average_days_between_purchases == 0.0

    @pytest.mark.asyncio
    async def test_monthly_and_category_totals_agree(self, analytics, history):
        """Every view splits the same spending."""
        overview = await analytics.get_overview("user-1")

        monthly_total = sum(m.total for m in overview.monthly)
        assert sum(c.total for c in overview.categories) == pytest.approx(monthly_total)
        assert sum(w.total for w in overview.weekdays) == pytest.approx(monthly_total)
        assert [c.category for c in overview.categories] == ["Dairy", "Pantry", "Bakery"]

    @pytest.mark.asyncio
    async def test_single_day_window(self, analytics, history):
        """Equal start and end cover that whole day."""
        day = datetime(2025, 11, 10)
        overview = await analytics.get_overview("user-1", start=day, end=day)

        assert [(m.month, m.total) for m in overview.monthly] == [("2025-11", 11.0)]
        assert overview.range.end == datetime(2025, 11, 10, 23, 59, 59, 999000)

    @pytest.mark.asyncio
    async def test_explicit_window_excludes_outside(self, analytics, history):
        """Purchases outside the window are left out."""
        overview = await analytics.get_overview(
            "user-1", start=datetime(2025, 11, 1), end=datetime(2025, 11, 30)
        )

        assert [m.month for m in overview.monthly] == ["2025-11"]
        assert overview.average_days_between_purchases == 5.0

    @pytest.mark.asyncio
    async def test_empty_window(self, analytics):
        """No purchases gives empty views and zero figures."""
        overview = await analytics.get_overview("nobody")

        assert overview.monthly == []
        assert overview.categories == []
        assert overview.weekdays == []
        assert overview.brands == []
        assert overview.month_comparison.percentage_change == 0.0
        assert overview.average_days_between_purchases == 0.0
        assert overview.projected_month_total == 0

    @pytest.mark.asyncio
    async def test_sqlite_backend(self, tmp_path):
        """The overview reads the same from the SQLite store."""
        store = SQLiteStore(db_path=tmp_path / "basket.db")
        store.save_purchase(
            make_purchase("user-1", datetime(2025, 11, 3, 8, 0), [make_item(price=6, quantity=2)])
        )
        engine = Analytics(data_store=store, clock=lambda: NOW)

        overview = await engine.get_overview("user-1")
        assert [(m.month, m.total, m.items_count) for m in overview.monthly] == [
            ("2025-11", 12.0, 2)
        ]
        assert overview.projected_month_total == 18

    @pytest.mark.asyncio
    async def test_aware_timestamps(self, any_store):
        """Aware purchase times and bounds mix with naive ones on either backend."""
        assembler = PurchaseAssembler(data_store=any_store)
        await assembler.create_purchase(
            "user-1",
            [make_raw_item()],
            created_at=datetime(2025, 11, 5, 12, 0, tzinfo=timezone.utc),
        )
        await assembler.create_purchase(
            "user-1", [make_raw_item(unit_price_at_purchase=4.5)], created_at=datetime(2025, 11, 8)
        )
        engine = Analytics(data_store=any_store, clock=lambda: NOW)

        overview = await engine.get_overview("user-1")
        assert [(m.month, m.total) for m in overview.monthly] == [("2025-11", 9.0)]

        bounded = await engine.get_overview(
            "user-1",
            start=datetime(2025, 11, 2, tzinfo=timezone.utc),
            end=datetime(2025, 11, 28, tzinfo=timezone.utc),
        )
        assert [(m.month, m.total) for m in bounded.monthly] == [("2025-11", 9.0)]
