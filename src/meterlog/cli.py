"""Command-line interface for tracking meter readings and consumption."""

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import db, export
from .analysis import summary
from .analysis.consumption import build_daily_series
from .collectors import uk_prices
from .config import currency_symbol, load_preferences
from .errors import MeterLogError
from .models import Period, ReadingType
from .tariffs import (
    calculate_cost_for_period,
    load_tariffs_from_db,
    load_tariffs_from_yaml,
    monthly_targets,
    save_tariffs_to_db,
)
from .tracker import MeterTracker

console = Console()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M"]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def load_tracker(ctx) -> MeterTracker:
    """Open the reading store and start a session over it."""
    db_path = ctx.obj["db_path"]
    db.init_db(db_path)
    try:
        preferences = load_preferences(ctx.obj["config_path"])
    except MeterLogError as e:
        fail(ctx, e)
    return MeterTracker.from_store(db.SQLiteReadingStore(db_path), preferences)


def fail(ctx, error: Exception) -> NoReturn:
    console.print(f"[red]Error: {error}[/red]")
    ctx.exit(1)


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to preferences.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """Meter log - track meter readings and analyse electricity usage."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    configure_logging(verbose)


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")

    # Offer to load tariffs
    try:
        tariffs = load_tariffs_from_yaml()
    except FileNotFoundError:
        return
    count = save_tariffs_to_db(tariffs, ctx.obj["db_path"])
    console.print(f"[green]Loaded {count} tariff(s) from config[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    db.init_db(ctx.obj["db_path"])
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    readings = stats["meter_readings"]
    table.add_row(
        "Meter readings",
        str(readings["count"]),
        f"{readings['earliest'] or 'N/A'} → {readings['latest'] or 'N/A'}",
    )
    for reading_type, count in stats["readings_by_type"].items():
        table.add_row(f"  └ {reading_type}", str(count), "")

    table.add_row("Tariffs", str(stats["tariffs"]["count"]), "")

    console.print(table)


# Reading commands
@cli.group()
def reading():
    """Add, correct and list meter readings."""
    pass


@reading.command("add")
@click.argument("value", type=float)
@click.option("--date", "when", type=click.DateTime(formats=DATE_FORMATS), help="When the reading was taken (default: now)")
@click.option(
    "--type",
    "reading_type",
    type=click.Choice([t.value for t in ReadingType], case_sensitive=False),
    default=ReadingType.MANUAL.value,
    show_default=True,
)
@click.option("--notes", help="Free-text note")
@click.option("--first", "is_first", is_flag=True, help="Mark as the move-in reading")
@click.pass_context
def reading_add(ctx, value, when, reading_type, notes, is_first):
    """Record a cumulative meter reading in kWh."""
    tracker = load_tracker(ctx)
    try:
        added = tracker.add_reading(
            value,
            when or datetime.now(),
            type=ReadingType(reading_type.upper()),
            notes=notes,
            is_first_reading=is_first,
        )
    except MeterLogError as e:
        fail(ctx, e)

    console.print(f"[green]Added reading {added.reading} kWh on {added.day}[/green]")
    console.print(f"[dim]{added.id}[/dim]")


@reading.command("update")
@click.argument("reading_id")
@click.option("--value", type=float, help="New reading in kWh")
@click.option("--date", "when", type=click.DateTime(formats=DATE_FORMATS), help="New date")
@click.option("--notes", help="New note")
@click.pass_context
def reading_update(ctx, reading_id, value, when, notes):
    """Correct an existing reading."""
    changes = {}
    if value is not None:
        changes["reading"] = value
    if when is not None:
        changes["date"] = when
    if notes is not None:
        changes["notes"] = notes
    if not changes:
        console.print("[yellow]Nothing to update[/yellow]")
        return

    tracker = load_tracker(ctx)
    try:
        updated = tracker.update_reading(reading_id, **changes)
    except MeterLogError as e:
        fail(ctx, e)
    console.print(f"[green]Updated reading: {updated.reading} kWh on {updated.day}[/green]")


@reading.command("delete")
@click.argument("reading_id")
@click.pass_context
def reading_delete(ctx, reading_id):
    """Delete a reading."""
    tracker = load_tracker(ctx)
    try:
        tracker.delete_reading(reading_id)
    except MeterLogError as e:
        fail(ctx, e)
    console.print(f"[green]Deleted reading {reading_id}[/green]")


@reading.command("first")
@click.argument("reading_id")
@click.option("--toggle", is_flag=True, help="Clear the flag if the reading already has it")
@click.pass_context
def reading_first(ctx, reading_id, toggle):
    """Mark a reading as the move-in reading."""
    tracker = load_tracker(ctx)
    try:
        if toggle:
            marked = tracker.toggle_first_reading(reading_id)
        else:
            marked = tracker.set_first_reading(reading_id)
    except MeterLogError as e:
        fail(ctx, e)

    if marked.is_first_reading:
        console.print(f"[green]Reading on {marked.day} is now the first reading[/green]")
    else:
        console.print(f"[green]Cleared first reading flag on {marked.day}[/green]")


@reading.command("list")
@click.option("--limit", default=20, help="Number of most recent readings to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def reading_list(ctx, limit, as_json):
    """List recent readings."""
    tracker = load_tracker(ctx)
    readings = tracker.readings[-limit:] if limit else tracker.readings

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in readings], indent=2))
        return

    if not readings:
        console.print("[yellow]No readings found[/yellow]")
        return

    table = Table(title="Meter Readings")
    table.add_column("Date", style="cyan")
    table.add_column("Reading (kWh)", justify="right")
    table.add_column("Type")
    table.add_column("Notes")
    table.add_column("ID", style="dim")

    for r in readings:
        reading_type = f"[yellow]{r.type.value}[/yellow]" if r.is_estimated else r.type.value
        if r.is_first_reading:
            reading_type += " [magenta](first)[/magenta]"
        table.add_row(
            r.date.strftime("%Y-%m-%d %H:%M"),
            f"{r.reading:.2f}",
            reading_type,
            r.notes or "",
            r.id,
        )

    console.print(table)


# Estimation commands
@cli.group()
def estimate():
    """Estimated readings for days without a manual reading."""
    pass


@estimate.command("generate")
@click.option("--today", type=click.DateTime(formats=["%Y-%m-%d"]), help="Estimate up to this date")
@click.pass_context
def estimate_generate(ctx, today):
    """Fill the days since the last manual reading with estimates."""
    tracker = load_tracker(ctx)
    try:
        added = tracker.generate_estimated_readings(today.date() if today else None)
    except MeterLogError as e:
        fail(ctx, e)

    if not added:
        console.print("[yellow]No estimated readings needed[/yellow]")
        return
    console.print(f"[green]Added {len(added)} estimated reading(s)[/green]")
    for r in added:
        console.print(f"  {r.day}: {r.reading:.2f} kWh")


@estimate.command("clear")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), help="Remove estimates on this date")
@click.option("--id", "reading_id", help="Remove one estimated reading")
@click.pass_context
def estimate_clear(ctx, day, reading_id):
    """Remove estimated readings."""
    if not day and not reading_id:
        console.print("[red]Please specify --date or --id[/red]")
        return

    tracker = load_tracker(ctx)
    try:
        if reading_id:
            tracker.remove_estimated_reading(reading_id)
            console.print(f"[green]Removed estimated reading {reading_id}[/green]")
        else:
            removed = tracker.remove_estimated_for_date(day.date())
            console.print(f"[green]Removed {removed} estimated reading(s) on {day.date()}[/green]")
    except MeterLogError as e:
        fail(ctx, e)


# Analysis commands
@cli.command()
@click.option("--daily", is_flag=True, help="One point per calendar day, gaps filled with zero")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def series(ctx, daily, as_json):
    """Show consumption between consecutive readings."""
    tracker = load_tracker(ctx)
    unit_rate = tracker.preferences.unit_rate
    points = build_daily_series(tracker.readings, unit_rate) if daily else tracker.chart_data

    if as_json:
        click.echo(json.dumps([{"date": p.date, "kwh": p.kwh, "cost": p.cost} for p in points], indent=2))
        return

    if not points:
        console.print("[yellow]Not enough readings for a series[/yellow]")
        return

    symbol = currency_symbol(tracker.preferences)
    table = Table(title="Daily Consumption" if daily else "Consumption")
    table.add_column("Date", style="cyan")
    table.add_column("kWh", justify="right")
    table.add_column("Cost", justify="right")

    for p in points:
        kwh = f"[red]{p.kwh:.2f}[/red]" if p.kwh < 0 else f"{p.kwh:.2f}"
        table.add_row(p.date, kwh, f"{symbol}{p.cost:.2f}")

    console.print(table)


@cli.command()
@click.option(
    "--period",
    type=click.Choice([p.value for p in Period]),
    default=Period.WEEKLY.value,
    show_default=True,
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def report(ctx, period, as_json):
    """Consumption grouped by day, week or month."""
    tracker = load_tracker(ctx)
    buckets = tracker.time_series(Period(period))

    if as_json:
        data = [
            {
                "period": b.period,
                "total_kwh": b.total_kwh,
                "total_cost": b.total_cost,
                "average_daily": b.average_daily,
                "trend": b.trend.value,
            }
            for b in buckets
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not buckets:
        console.print("[yellow]No consumption recorded[/yellow]")
        return

    symbol = currency_symbol(tracker.preferences)
    table = Table(title=f"{period.capitalize()} Consumption")
    table.add_column("Period", style="cyan")
    table.add_column("kWh", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Avg/interval", justify="right")
    table.add_column("Trend")

    for b in buckets:
        table.add_row(
            b.period,
            f"{b.total_kwh:.2f}",
            f"{symbol}{b.total_cost:.2f}",
            f"{b.average_daily:.2f}",
            b.trend.value,
        )

    console.print(table)


@cli.command("summary")
@click.option("--days", type=int, help="Only include the last N days (default: all readings)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summary_cmd(ctx, days, as_json):
    """Summarise consumption over a period."""
    tracker = load_tracker(ctx)
    start = end = None
    if days:
        end = datetime.now()
        start = end - timedelta(days=days)

    data = summary.get_period_summary(tracker.readings, tracker.preferences.unit_rate, start, end)

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(summary.format_period_summary_text(data, currency_symbol(tracker.preferences)))


@cli.command()
@click.option("--month", type=click.DateTime(formats=["%Y-%m"]), help="Month (YYYY-MM), defaults to this month")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def overview(ctx, month, as_json):
    """Monthly overview with a weekly breakdown."""
    tracker = load_tracker(ctx)
    target = month.date() if month else date.today()

    data = summary.get_monthly_overview(tracker.readings, tracker.preferences.unit_rate, target)

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(summary.format_monthly_overview_text(data, currency_symbol(tracker.preferences)))


# Export commands
@cli.group("export")
def export_cmd():
    """Export readings or consumption."""
    pass


def _emit(content: str, output: str | None) -> None:
    if output:
        path = export.write_export(content, Path(output))
        console.print(f"[green]Exported to {path}[/green]")
    else:
        click.echo(content, nl=False)


@export_cmd.command("readings")
@click.option("--format", "fmt", type=click.Choice(["csv", "json"]), default="csv", show_default=True)
@click.option("--output", type=click.Path(), help="Write to this file instead of stdout")
@click.pass_context
def export_readings(ctx, fmt, output):
    """Export all readings."""
    tracker = load_tracker(ctx)
    if fmt == "csv":
        content = export.readings_to_csv(tracker.readings)
    else:
        content = export.readings_to_json(tracker.readings) + "\n"
    _emit(content, output)


@export_cmd.command("consumption")
@click.option("--format", "fmt", type=click.Choice(["csv", "json"]), default="csv", show_default=True)
@click.option("--output", type=click.Path(), help="Write to this file instead of stdout")
@click.pass_context
def export_consumption(ctx, fmt, output):
    """Export consumption between readings."""
    tracker = load_tracker(ctx)
    unit_rate = tracker.preferences.unit_rate
    if fmt == "csv":
        content = export.consumption_to_csv(tracker.readings, unit_rate)
    else:
        content = export.consumption_to_json(tracker.readings, unit_rate) + "\n"
    _emit(content, output)


# Tariff commands
@cli.group()
def tariff():
    """Tariff management commands."""
    pass


@tariff.command("load")
@click.option("--config", type=click.Path(exists=True), help="Path to tariffs.yaml")
@click.pass_context
def tariff_load(ctx, config):
    """Load tariffs from YAML config."""
    config_path = Path(config) if config else None
    try:
        tariffs = load_tariffs_from_yaml(config_path)
    except (FileNotFoundError, MeterLogError) as e:
        fail(ctx, e)
    db.init_db(ctx.obj["db_path"])
    count = save_tariffs_to_db(tariffs, ctx.obj["db_path"])
    console.print(f"[green]Loaded {count} tariff(s)[/green]")


@tariff.command("list")
@click.pass_context
def tariff_list(ctx):
    """List stored tariffs."""
    db.init_db(ctx.obj["db_path"])
    tariffs = load_tariffs_from_db(ctx.obj["db_path"])
    if not tariffs:
        console.print("[yellow]No tariffs loaded - run 'meterlog tariff load'[/yellow]")
        return

    table = Table(title="Tariffs")
    table.add_column("Provider", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Unit rate", justify="right")
    table.add_column("Standing", justify="right")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Monthly target", justify="right")

    for t in tariffs:
        targets = monthly_targets(t)
        table.add_row(
            t.provider,
            t.name,
            t.product_type,
            f"{t.unit_rate:.2f}p/kWh",
            f"{t.standing_charge:.2f}p/day",
            t.start_date.isoformat(),
            t.end_date.isoformat() if t.end_date else "ongoing",
            f"{targets['usage']:.0f} kWh / £{targets['cost']:.2f}",
        )

    console.print(table)


@tariff.command("cost")
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
@click.option("--kwh", type=float, help="Consumption to cost (default: from readings in the range)")
@click.pass_context
def tariff_cost(ctx, start, end, kwh):
    """Cost of a period under the stored tariffs, including standing charge."""
    if kwh is None:
        tracker = load_tracker(ctx)
        data = summary.get_period_summary(
            tracker.readings, tracker.preferences.unit_rate, start, end.replace(hour=23, minute=59)
        )
        kwh = data["total_kwh"]
    else:
        db.init_db(ctx.obj["db_path"])

    tariffs = load_tariffs_from_db(ctx.obj["db_path"])
    if not tariffs:
        console.print("[yellow]No tariffs loaded - run 'meterlog tariff load'[/yellow]")
        return

    amount = calculate_cost_for_period(tariffs, start, end, kwh)
    console.print(f"{start.date()} to {end.date()}: {kwh:.2f} kWh = [bold]£{amount:.2f}[/bold]")


# Market price commands
@cli.group()
def prices():
    """UK electricity prices by DNO region."""
    pass


@prices.command("regions")
def prices_regions():
    """List DNO region codes."""
    table = Table(title="DNO Regions")
    table.add_column("Code", style="cyan")
    table.add_column("Region")
    for code, name in uk_prices.DNO_REGIONS.items():
        table.add_row(code, name)
    console.print(table)


@prices.command("current")
@click.option("--dno", default="12", show_default=True, help="DNO region code (10-23)")
@click.option("--voltage", type=click.Choice(uk_prices.VOLTAGE_LEVELS), default="LV", show_default=True)
def prices_current(dno, voltage):
    """Latest half-hourly price for today."""
    region = uk_prices.get_dno_by_code(dno)
    if region is None:
        console.print(f"[red]Unknown DNO region: {dno}[/red]")
        return

    price = uk_prices.get_current_price(dno, voltage)
    if price is None:
        console.print("[yellow]No price available[/yellow]")
        return
    console.print(
        f"{region} ({voltage}): [bold]{price.overall_pence:.2f}p/kWh[/bold] "
        f"at {price.timestamp.strftime('%H:%M %d/%m/%Y')}"
    )


@prices.command("average")
@click.option("--dno", default="12", show_default=True, help="DNO region code (10-23)")
@click.option("--voltage", type=click.Choice(uk_prices.VOLTAGE_LEVELS), default="LV", show_default=True)
@click.option("--days", default=7, help="Number of days to average over")
def prices_average(dno, voltage, days):
    """Average price over the last N days."""
    region = uk_prices.get_dno_by_code(dno)
    if region is None:
        console.print(f"[red]Unknown DNO region: {dno}[/red]")
        return

    end = date.today()
    start = end - timedelta(days=days)
    average = uk_prices.get_average_price(dno, voltage, start, end)
    if average is None:
        console.print("[yellow]No price available[/yellow]")
        return
    console.print(f"{region} ({voltage}) average over {days} days: [bold]{average:.2f}p/kWh[/bold]")


if __name__ == "__main__":
    cli()
