"""Output formatting for CLI and programmatic use."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .data_store import JSONEncoder


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "purchase" in payload:
            self._render_purchase(data)
        elif "purchases" in payload:
            self._render_purchases(data)
        elif "products" in payload:
            self._render_products(data)
        elif "product" in payload:
            self._render_product(data)
        elif "overview" in payload:
            self._render_overview(data)

    def _render_purchase(self, data: dict) -> None:
        """Render a single purchase with its items and price warnings."""
        purchase = data["data"]["purchase"]

        table = Table(
            title=f"Purchase {purchase['id']}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("#", justify="right")
        table.add_column("Item", style="cyan")
        table.add_column("Brand", style="green")
        table.add_column("Qty", style="magenta", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Category", style="yellow")

        for index, item in enumerate(purchase["items"]):
            table.add_row(
                str(index),
                item["name"],
                item["brand"],
                str(item["quantity"]),
                f"${item['unit_price_at_purchase']:.2f}",
                item["category"],
            )

        self.console.print(table)
        self.console.print(f"Date: {purchase['created_at']}")
        self.console.print(f"[bold]Total: ${purchase['total']:.2f}[/bold]")

        warnings = data["data"].get("price_warnings") or []
        if warnings:
            self.console.print(f"\n[yellow]Price differences ({len(warnings)}):[/yellow]")
            for warning in warnings:
                self.console.print(
                    f"  [{warning['item_index']}] {warning['name']}: "
                    f"catalog ${warning['catalog_price']:.2f}, "
                    f"paid ${warning['submitted_price']:.2f}"
                )

    def _render_purchases(self, data: dict) -> None:
        """Render a purchase listing."""
        purchases = data["data"]["purchases"]

        if not purchases:
            self.console.print("[dim]No purchases found[/dim]")
            return

        table = Table(title="Purchases", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Date")
        table.add_column("Items", justify="right")
        table.add_column("Total", justify="right")

        for purchase in purchases:
            table.add_row(
                str(purchase["id"])[:8],
                str(purchase["created_at"]),
                str(purchase["items"]),
                f"${purchase['total']:.2f}",
            )

        self.console.print(table)

    def _render_products(self, data: dict) -> None:
        """Render the catalog."""
        products = data["data"]["products"]

        if not products:
            self.console.print("[dim]Catalog is empty[/dim]")
            return

        table = Table(title="Catalog", show_header=True, header_style="bold cyan")
        table.add_column("Scan code", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Brand", style="green")
        table.add_column("Size", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Per unit", justify="right")
        table.add_column("Category", style="yellow")

        for product in products:
            per_unit = product.get("price_per_unit")
            table.add_row(
                product["scan_code"],
                product["name"],
                product["brand"],
                f"{product['package_size']:g} {product['unit_of_measure']}",
                f"${product['unit_price']:.2f}",
                f"${per_unit:.4f}" if per_unit is not None else "-",
                product["category"],
            )

        self.console.print(table)
        self.console.print(f"\nTotal products: {len(products)}")

    def _render_product(self, data: dict) -> None:
        """Render a single catalog product."""
        product = data["data"]["product"]
        per_unit = product.get("price_per_unit")
        lines = [
            f"[bold]{product['name']}[/bold] ({product['brand']})",
            f"Scan code: {product['scan_code']}",
            f"Package: {product['package_size']:g} {product['unit_of_measure']}",
            f"Price: ${product['unit_price']:.2f}",
            f"Per unit: ${per_unit:.4f}" if per_unit is not None else "Per unit: -",
            f"Category: {product['category']}",
        ]
        self.console.print(Panel("\n".join(lines), title="Product"))

    def _render_overview(self, data: dict) -> None:
        """Render the analytics overview."""
        overview = data["data"]["overview"]
        date_range = overview["range"]

        self.console.print(
            f"\n[bold]Spending overview[/bold] {date_range['start']} to {date_range['end']}"
        )

        if not overview["monthly"]:
            self.console.print("[dim]No purchases in this range[/dim]")
            return

        monthly = Table(title="By month", show_header=True, header_style="bold")
        monthly.add_column("Month")
        monthly.add_column("Total", justify="right")
        monthly.add_column("Items", justify="right")
        for row in overview["monthly"]:
            monthly.add_row(row["month"], f"${row['total']:.2f}", str(row["items_count"]))
        self.console.print(monthly)

        categories = Table(title="By category", show_header=True, header_style="bold")
        categories.add_column("Category")
        categories.add_column("Total", justify="right")
        categories.add_column("Items", justify="right")
        for row in overview["categories"]:
            categories.add_row(row["category"], f"${row['total']:.2f}", str(row["items_count"]))
        self.console.print(categories)

        brands = Table(title="Top brands", show_header=True, header_style="bold")
        brands.add_column("Brand")
        brands.add_column("Total", justify="right")
        for row in overview["brands"]:
            brands.add_row(row["brand"], f"${row['total']:.2f}")
        self.console.print(brands)

        weekdays = Table(title="By weekday", show_header=True, header_style="bold")
        weekdays.add_column("Day")
        weekdays.add_column("Total", justify="right")
        weekdays.add_column("Purchases", justify="right")
        for row in overview["weekdays"]:
            weekdays.add_row(str(row["day"]), f"${row['total']:.2f}", str(row["purchase_count"]))
        self.console.print(weekdays)

        comparison = overview["month_comparison"]
        change = comparison["percentage_change"]
        color = "red" if change > 0 else "green"
        self.console.print(
            f"\n{comparison['current_month']} vs {comparison['previous_month'] or '-'}: "
            f"[{color}]{change:+.1f}%[/{color}]"
        )
        self.console.print(
            f"Average days between purchases: {overview['average_days_between_purchases']:.1f}"
        )
        if overview["projected_month_total"]:
            self.console.print(
                f"Projected spending this month: ${overview['projected_month_total']}"
            )

    def error(
        self,
        message: str,
        error_code: str | None = None,
        details: dict | None = None,
    ) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
            details: Optional structured detail (JSON mode only)
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            if details:
                output["details"] = details
            print(json.dumps(output, cls=JSONEncoder))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
