"""CLI entry point for Basket Insights."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Annotated
from uuid import UUID

import typer
from rich.console import Console

from .analytics import Analytics
from .catalog import CatalogResolver
from .config import ConfigManager
from .data_store import BackendType, DataStoreProtocol, create_data_store
from .errors import BasketError, ValidationFailure
from .logging_config import setup_logging
from .output_formatter import OutputFormatter
from .purchase_assembler import PurchaseAssembler

app = typer.Typer(
    name="basket",
    help="Purchase tracking with catalog reconciliation and spending analytics",
    no_args_is_help=True,
)

console = Console()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]

# Global state for formatter and config (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
data_store: DataStoreProtocol | None = None


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_data_store() -> DataStoreProtocol:
    """Get or create DataStore instance using config values."""
    global data_store
    if data_store is None:
        cfg = get_config()
        backend = BackendType(cfg.data.backend)
        data_store = create_data_store(backend=backend, data_dir=cfg.data.storage_dir)
    return data_store


def get_assembler() -> PurchaseAssembler:
    """Build a PurchaseAssembler wired to the configured store."""
    cfg = get_config()
    store = get_data_store()
    resolver = CatalogResolver(store, price_drift_threshold=cfg.catalog.price_drift_threshold)
    return PurchaseAssembler(data_store=store, resolver=resolver)


def get_analytics() -> Analytics:
    """Build an Analytics engine wired to the configured store."""
    cfg = get_config()
    return Analytics(
        data_store=get_data_store(),
        lookback_months=cfg.analytics.lookback_months,
        top_brands=cfg.analytics.top_brands,
    )


def resolve_user(user: str | None) -> str:
    """Pick the explicit user or the configured default."""
    effective = user or get_config().defaults.user
    if not effective:
        formatter.error("No user given; pass --user or set defaults.user", error_code="NO_USER")
        raise typer.Exit(code=1)
    return effective


def fail(error: BasketError) -> None:
    """Report a typed failure and exit."""
    details = error.to_dict() if isinstance(error, ValidationFailure) else None
    formatter.error(str(error), error_code=error.error_code, details=details)
    raise typer.Exit(code=1)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    backend: Annotated[
        BackendType | None, typer.Option("--backend", help="Storage backend")
    ] = None,
) -> None:
    """Basket Insights CLI - Record purchases and explore your spending."""
    global formatter, config, data_store

    formatter = OutputFormatter(json_mode=json_output)

    # Load config early
    config = ConfigManager()

    # CLI options override config, which overrides defaults
    effective_data_dir = data_dir if data_dir else config.data.storage_dir
    effective_backend = backend or BackendType(config.data.backend)

    setup_logging(
        config.log_dir(effective_data_dir),
        level=config.logging.level,
        console_level=config.logging.console_level,
    )

    data_store = create_data_store(backend=effective_backend, data_dir=effective_data_dir)


# Purchase subcommand group
purchase_app = typer.Typer(help="Purchase recording commands")
app.add_typer(purchase_app, name="purchase")


@purchase_app.command("add")
def purchase_add(
    user: Annotated[str | None, typer.Option("--user", "-u", help="Purchase owner")] = None,
    data: Annotated[str | None, typer.Option("--data", "-d", help="JSON item data")] = None,
    file: Annotated[Path | None, typer.Option("--file", "-f", help="Path to JSON file")] = None,
    when: Annotated[
        datetime | None,
        typer.Option("--date", help="Purchase date (defaults to now)", formats=DATE_FORMATS),
    ] = None,
) -> None:
    """Record a purchase, reconciling each item against the catalog."""
    owner = resolve_user(user)
    try:
        if not data and not file:
            formatter.error("Must provide either --data or --file")
            raise typer.Exit(code=1)

        if data:
            payload = json.loads(data)
        else:
            with open(file) as f:  # type: ignore[arg-type]
                payload = json.load(f)

        items = payload.get("items", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            formatter.error("Items must be a JSON list", error_code="VALIDATION_FAILED")
            raise typer.Exit(code=1)

        result = asyncio.run(get_assembler().create_purchase(owner, items, created_at=when))

        output_data = {
            "success": True,
            "data": {
                "purchase": result.purchase.model_dump(mode="json"),
                "price_warnings": [w.model_dump(mode="json") for w in result.price_warnings],
            },
        }
        formatter.output(output_data, f"Recorded purchase of ${result.total:.2f}")
    except json.JSONDecodeError as e:
        formatter.error(f"Invalid JSON: {e}")
        raise typer.Exit(code=1)
    except BasketError as e:
        fail(e)
    except OSError as e:
        formatter.error(str(e))
        raise typer.Exit(code=1)


def _check_range(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and start > end:
        formatter.error('"--from" must not be after "--to"', error_code="INVALID_RANGE")
        raise typer.Exit(code=1)


@purchase_app.command("list")
def purchase_list(
    user: Annotated[str | None, typer.Option("--user", "-u", help="Purchase owner")] = None,
    start: Annotated[
        datetime | None, typer.Option("--from", help="Start date", formats=DATE_FORMATS)
    ] = None,
    end: Annotated[
        datetime | None, typer.Option("--to", help="End date", formats=DATE_FORMATS)
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Max purchases")] = None,
) -> None:
    """List recorded purchases, newest first."""
    owner = resolve_user(user)
    _check_range(start, end)
    try:
        purchases = asyncio.run(get_assembler().list_purchases(owner, start, end, limit))

        if not purchases:
            formatter.warning("No purchases found")
            return

        output_data = {
            "success": True,
            "data": {
                "purchases": [
                    {
                        "id": str(p.id),
                        "created_at": p.created_at.isoformat(),
                        "total": p.total,
                        "items": len(p.items),
                    }
                    for p in purchases
                ]
            },
        }
        formatter.output(output_data, f"Found {len(purchases)} purchases")
    except BasketError as e:
        fail(e)


@purchase_app.command("show")
def purchase_show(
    purchase_id: Annotated[str, typer.Argument(help="Purchase ID")],
    user: Annotated[str | None, typer.Option("--user", "-u", help="Purchase owner")] = None,
) -> None:
    """Show one purchase."""
    owner = resolve_user(user)
    try:
        parsed_id = UUID(purchase_id)
    except ValueError:
        formatter.error(f"Invalid purchase ID '{purchase_id}'", error_code="NOT_FOUND")
        raise typer.Exit(code=1)

    try:
        purchase = asyncio.run(get_assembler().get_purchase(owner, parsed_id))
        if purchase is None:
            formatter.error(f"Purchase '{purchase_id}' not found", error_code="NOT_FOUND")
            raise typer.Exit(code=1)

        output_data = {"success": True, "data": {"purchase": purchase.model_dump(mode="json")}}
        formatter.output(output_data)
    except BasketError as e:
        fail(e)


# Catalog subcommand group
catalog_app = typer.Typer(help="Product catalog commands")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("list")
def catalog_list() -> None:
    """List catalog products."""
    try:
        products = get_data_store().list_products()
        output_data = {
            "success": True,
            "data": {"products": [p.model_dump(mode="json") for p in products]},
        }
        formatter.output(output_data, f"Found {len(products)} products")
    except BasketError as e:
        fail(e)


@catalog_app.command("show")
def catalog_show(
    scan_code: Annotated[str, typer.Argument(help="Product scan code")],
) -> None:
    """Show a catalog product by scan code."""
    try:
        product = get_data_store().get_product_by_scan_code(scan_code)
        if product is None:
            formatter.error(f"No product with scan code '{scan_code}'", error_code="NOT_FOUND")
            raise typer.Exit(code=1)

        formatter.output({"success": True, "data": {"product": product.model_dump(mode="json")}})
    except BasketError as e:
        fail(e)


# Stats subcommand group
stats_app = typer.Typer(help="Spending analytics")
app.add_typer(stats_app, name="stats")


@stats_app.command("overview")
def stats_overview(
    user: Annotated[str | None, typer.Option("--user", "-u", help="Purchase owner")] = None,
    start: Annotated[
        datetime | None, typer.Option("--from", help="Start date", formats=DATE_FORMATS)
    ] = None,
    end: Annotated[
        datetime | None, typer.Option("--to", help="End date", formats=DATE_FORMATS)
    ] = None,
) -> None:
    """Monthly, category, brand and weekday spending for a date range."""
    owner = resolve_user(user)
    _check_range(start, end)
    try:
        overview = asyncio.run(get_analytics().get_overview(owner, start, end))
        output_data = {"success": True, "data": {"overview": overview.model_dump(mode="json")}}
        formatter.output(output_data, "Spending overview")
    except BasketError as e:
        fail(e)


if __name__ == "__main__":
    app()
