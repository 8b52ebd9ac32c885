"""CLI for inspecting and maintaining the offer store.

Usage:
    python -m dexstore.maintenance.cli status
    python -m dexstore.maintenance.cli check
    python -m dexstore.maintenance.cli offers --table sell --country US
    python -m dexstore.maintenance.cli hashes --table buy --after 2026-01-01
    python -m dexstore.maintenance.cli expire
    python -m dexstore.maintenance.cli backup --keep 5
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import click
from dateutil import parser as date_parser
from rich.console import Console
from rich.table import Table

from dexstore.config import DEFAULT_CONFIG_PATH, load_settings
from dexstore.maintenance.runner import MaintenanceRunner, build_store
from dexstore.storage.exceptions import StoreError
from dexstore.storage.models import OfferFilter, OffersPeriod, hash_to_hex

console = Console()

TABLE_CHOICES = ("sell", "buy", "my")


def parse_timestamp(value: str) -> int:
    """Epoch seconds from either an integer or a date/time string."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        return int(date_parser.parse(value).timestamp())
    except (ValueError, OverflowError) as exc:
        raise click.BadParameter(f"not a timestamp: {value!r}") from exc


def _repository(store, table: str):
    return {"sell": store.offers_sell, "buy": store.offers_buy, "my": store.my_offers}[table]


def _fmt_time(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M") if ts else "-"


@contextmanager
def store_errors(label: str = "Error"):
    """Report a StoreError as a red message and exit 1 instead of a traceback."""
    try:
        yield
    except StoreError as exc:
        console.print(f"[red]{label}:[/red] {exc}")
        sys.exit(1)


@click.group()
@click.option("--db", default=None, help="Store path (overrides config)")
@click.option("--config", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, db: Optional[str], config: str, verbose: bool):
    """Offer store maintenance CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(config)
    if db:
        settings.db_path = db
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["store"] = build_store(settings)


@cli.command()
@click.pass_context
def status(ctx):
    """Show schema version and row counts."""
    store = ctx.obj["store"]
    with store_errors(), store:
        stats = store.stats()

    console.print("\n[bold]Store Status[/bold]")
    console.print(f"  Path: {store.db_path}")
    console.print(f"  Size: {stats.pop('db_size_bytes') / 1024:.1f} KB")
    console.print(f"  Schema: v{stats.pop('schema_version')}")

    table = Table(title="Rows per table")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in stats.items():
        table.add_row(name, str(count))
    console.print(table)


@cli.command()
@click.pass_context
def check(ctx):
    """Open the store, running integrity checks and any pending migration."""
    store = ctx.obj["store"]
    with store_errors("Store check failed"), store:
        version = store.schema_version()
        rescan = store.offers_rescan
    console.print(f"[green]Store OK[/green] (schema v{version})")
    if rescan:
        console.print("[yellow]Offer tables were (re)created; offers need a rescan.[/yellow]")


@cli.command()
@click.option("--table", "-t", type=click.Choice(TABLE_CHOICES), default="sell")
@click.option("--country", "-c", default="", help="Country ISO code")
@click.option("--currency", "-u", default="", help="Currency ISO code")
@click.option("--payment", "-p", default=0, type=int, help="Payment method type")
@click.option("--limit", "-n", default=20, help="Max results (0 = all)")
@click.option("--offset", default=0, help="Rows to skip")
@click.pass_context
def offers(ctx, table: str, country: str, currency: str, payment: int, limit: int, offset: int):
    """List offers with optional filters."""
    store = ctx.obj["store"]
    filters = OfferFilter(country_iso=country, currency_iso=currency, payment_method=payment)
    with store_errors(), store:
        repo = _repository(store, table)
        rows = repo.list(filters, limit=limit, offset=offset)
        total = repo.count(filters)

    if not rows:
        console.print("[yellow]No offers found.[/yellow]")
        return

    out = Table(title=f"Offers ({len(rows)} of {total})")
    out.add_column("Hash", style="dim", max_width=18)
    out.add_column("Ver", justify="right")
    out.add_column("Country", width=7)
    out.add_column("Currency", width=8)
    out.add_column("Pay", justify="right")
    out.add_column("Price", justify="right")
    out.add_column("Expires")
    if table == "my":
        out.add_column("Type")
        out.add_column("Status")

    for row in rows:
        offer = row.offer if table == "my" else row
        cells = [
            hash_to_hex(offer.hash)[:16],
            str(offer.editing_version),
            offer.country_iso,
            offer.currency_iso,
            str(offer.payment_method),
            str(offer.price),
            _fmt_time(offer.time_to_expiration),
        ]
        if table == "my":
            cells += [row.type.name.lower(), row.status.name.lower()]
        out.add_row(*cells)
    console.print(out)


@cli.command()
@click.option("--table", "-t", type=click.Choice(("sell", "buy")), default="sell")
@click.option("--before", default=None, help="Only offers modified before this time")
@click.option("--after", default=None, help="Only offers modified at or after this time")
@click.pass_context
def hashes(ctx, table: str, before: Optional[str], after: Optional[str]):
    """Print hash/editing-version pairs used to reconcile with peers."""
    if before and after:
        raise click.UsageError("Use either --before or --after, not both")
    period, cutoff = OffersPeriod.ALL, 0
    if before:
        period, cutoff = OffersPeriod.BEFORE, parse_timestamp(before)
    elif after:
        period, cutoff = OffersPeriod.AFTER, parse_timestamp(after)

    store = ctx.obj["store"]
    with store_errors(), store:
        repo = _repository(store, table)
        pairs = repo.hashes_and_versions(period, cutoff)
        last = repo.last_modification()

    for offer_hash, version in pairs:
        click.echo(f"{hash_to_hex(offer_hash)} {version}")
    console.print(f"[dim]{len(pairs)} pair(s); last modification {_fmt_time(last)}[/dim]")


@cli.command()
@click.option("--add", "to_add", multiple=True, help="Filter to add")
@click.option("--remove", "to_remove", multiple=True, help="Filter to remove")
@click.pass_context
def filters(ctx, to_add, to_remove):
    """Show or edit the filter list."""
    store = ctx.obj["store"]
    with store_errors(), store:
        for value in to_add:
            store.filters.add(value)
        for value in to_remove:
            store.filters.delete(value)
        entries = store.filters.list()

    for entry in entries:
        click.echo(entry)
    console.print(f"[dim]{len(entries)} filter(s)[/dim]")


@cli.command()
@click.option("--now", "now_value", default=None, help="Reference time (default: current time)")
@click.pass_context
def expire(ctx, now_value: Optional[str]):
    """Delete expired broadcast offers and mark own expired offers."""
    runner = MaintenanceRunner(ctx.obj["store"], ctx.obj["settings"])
    now = parse_timestamp(now_value) if now_value else None
    with store_errors():
        result = runner.expire_offers(now)
    console.print(
        f"[green]Deleted {result.sell_deleted} sell and {result.buy_deleted} buy offers; "
        f"{result.my_offers_expired} own offers marked expired.[/green]"
    )


@cli.command()
@click.option("--keep", default=None, type=int, help="Backups to keep (overrides config)")
@click.pass_context
def backup(ctx, keep: Optional[int]):
    """Write a timestamped backup and rotate old ones."""
    settings = ctx.obj["settings"]
    if keep is not None:
        settings.backups_to_keep = keep
    runner = MaintenanceRunner(ctx.obj["store"], settings)
    report = runner.rotate_backups()

    if report.warning:
        console.print(f"[yellow]Warning:[/yellow] {report.warning}")
    if report.error:
        console.print(f"[red]Error:[/red] {report.error}")
    if report.success:
        console.print(f"[green]Backup written:[/green] {report.backup_path}")
        for path in report.removed:
            console.print(f"  removed {path}")
    else:
        sys.exit(1)


@cli.command()
@click.pass_context
def vacuum(ctx):
    """Vacuum the store file."""
    store = ctx.obj["store"]
    with store_errors(), store:
        with console.status("[bold green]Vacuuming store..."):
            store.vacuum()
        stats = store.stats()
    console.print("[green]Store vacuumed successfully")
    console.print(f"Store size: {stats['db_size_bytes'] / 1024:.1f} KB")


def main():
    cli()


if __name__ == "__main__":
    main()
