"""Typer CLI application for HeatMapPro geo-grid analytics.

Provides commands to run a geo-grid scan, assemble the white-label report,
export analytics payloads, review demo time-lapse history, and check status.
"""

import json
import logging
import os
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from heatmappro.config import DEFAULT_CONFIG_PATH
from heatmappro.modules.geo_grid.entities import (
    GridConfigError,
    HistoryOrderError,
    Priority,
    display_value,
)

console = Console()
app = typer.Typer(
    name="heatmappro",
    help="HeatMapPro Geo-Grid -- local rank sampling, SoLV metrics & white-label reports.",
    add_completion=False,
    no_args_is_help=True,
)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else os.getenv("HEATMAPPRO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_app(config: str, seed: Optional[int] = None, persist: bool = False):
    """Lazy-import and return an initialised HeatMapPro instance."""
    from heatmappro.app import HeatMapPro
    source = random.Random(seed) if seed is not None else None
    instance = HeatMapPro(config_path=config, random_source=source, persist=persist)
    instance.initialize()
    return instance


def _run_scan(instance, grid_size: Optional[str]):
    """Run a scan, turning input errors into a clean exit code 1."""
    try:
        return instance.run_scan(grid_size)
    except (GridConfigError, HistoryOrderError) as exc:
        console.print("[red]✘ " + str(exc) + "[/red]")
        raise typer.Exit(code=1)


def _write_or_print(text: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    console.print("[green]✔[/green] Written to " + str(output))


_PRIORITY_STYLE = {
    Priority.HIGH: "[red]high[/red]",
    Priority.MEDIUM: "[yellow]medium[/yellow]",
    Priority.LOW: "[blue]low[/blue]",
}


# ------------------------------------------------------------------
# scan
# ------------------------------------------------------------------
@app.command()
def scan(
    grid_size: Optional[str] = typer.Option(None, "--grid-size", "-g", help="Grid size, e.g. 7x7."),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Settings YAML path."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible sampling."),
    persist: bool = typer.Option(False, "--persist", help="Store the snapshot in the database."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Sample a geo-grid and show its metrics and recommendations."""
    _setup_logging(verbose)
    instance = _get_app(config, seed, persist)
    result = _run_scan(instance, grid_size)
    m = result.metrics

    console.print(Panel(
        "[bold cyan]Geo-Grid Scan: " + instance.business_name + " (" + result.grid_size + ")[/bold cyan]"
    ))
    table = Table(title="Grid Metrics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", min_width=22)
    table.add_column("Value", min_width=20)
    table.add_row("Average Map Rank", display_value(m.average_map_rank))
    table.add_row("Share of Local Voice", display_value(m.share_of_local_voice, "{:.1f}%"))
    table.add_row("Visibility Score", str(m.top_three_count) + "/" + str(m.total_points) + " points")
    table.add_row("Visible Points", str(m.visible_points))
    table.add_row("Percentile", m.percentile)
    console.print(table)

    if result.competitor_metrics:
        comp_table = Table(title="Competitors", show_header=True, header_style="bold magenta")
        comp_table.add_column("Competitor", style="cyan")
        comp_table.add_column("Avg Rank")
        comp_table.add_column("Top-3 Points")
        for cm in result.competitor_metrics:
            comp_table.add_row(cm.name, display_value(cm.average_rank), str(cm.visibility))
        console.print(comp_table)

    if result.recommendations:
        rec_table = Table(title="Recommendations", show_header=True, header_style="bold magenta")
        rec_table.add_column("Type", style="cyan")
        rec_table.add_column("Priority")
        rec_table.add_column("Finding", max_width=60)
        rec_table.add_column("Impact", max_width=30)
        for rec in result.recommendations:
            rec_table.add_row(
                rec.category.value, _PRIORITY_STYLE[rec.priority], rec.description, rec.impact,
            )
        console.print(rec_table)
    else:
        console.print("[green]No recommendations -- grid looks healthy.[/green]")


# ------------------------------------------------------------------
# report
# ------------------------------------------------------------------
@app.command()
def report(
    grid_size: Optional[str] = typer.Option(None, "--grid-size", "-g", help="Grid size, e.g. 7x7."),
    days: int = typer.Option(0, "--demo-days", help="Prefill this many days of synthetic history."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON to this file."),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Settings YAML path."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible sampling."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Assemble the white-label report for the latest scan."""
    _setup_logging(verbose)
    instance = _get_app(config, seed)
    if days > 0:
        instance.load_demo_history(days, today=date.today() - timedelta(days=1))
    _run_scan(instance, grid_size)
    payload = instance.build_white_label_report()
    _write_or_print(json.dumps(payload, indent=2, default=str), output)


# ------------------------------------------------------------------
# export
# ------------------------------------------------------------------
@app.command()
def export(
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or csv."),
    grid_size: Optional[str] = typer.Option(None, "--grid-size", "-g", help="Grid size, e.g. 7x7."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to this file."),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Settings YAML path."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible sampling."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Export the latest scan for BI tools (JSON payload or CSV point list)."""
    _setup_logging(verbose)
    fmt = fmt.lower()
    if fmt not in ("json", "csv"):
        console.print("[red]✘ Unsupported format: " + fmt + ". Use 'json' or 'csv'.[/red]")
        raise typer.Exit(code=1)

    instance = _get_app(config, seed)
    result = _run_scan(instance, grid_size)
    if fmt == "csv":
        from heatmappro.modules.geo_grid.report_assembler import grid_points_csv
        _write_or_print(grid_points_csv(result.grid), output)
    else:
        payload = instance.build_analytics_export()
        _write_or_print(json.dumps(payload, indent=2), output)


# ------------------------------------------------------------------
# timelapse
# ------------------------------------------------------------------
@app.command()
def timelapse(
    days: int = typer.Option(30, "--days", "-d", help="Days of synthetic history."),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Settings YAML path."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible sampling."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate demo time-lapse history and summarise its trend."""
    _setup_logging(verbose)
    if days < 1:
        console.print("[red]✘ --days must be at least 1.[/red]")
        raise typer.Exit(code=1)
    instance = _get_app(config, seed)
    instance.load_demo_history(days)
    tracker = instance.tracker

    table = Table(title="Time-Lapse Frames", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="cyan")
    table.add_column("Avg Rank")
    table.add_column("SoLV")
    table.add_column("Top-3")
    for frame in tracker.time_lapse_frames():
        avg = frame["average_rank"]
        table.add_row(
            frame["date"],
            "N/A" if avg is None else f"{avg:.1f}",
            f"{frame['share_of_voice']:.1f}%",
            str(frame["top_three_count"]),
        )
    console.print(table)

    summary = tracker.summary()
    console.print("\n[bold]Trend:[/bold] " + summary["trend_direction"])
    console.print("[bold]Best day:[/bold] " + str(summary["best_performing_day"]))
    for item in summary["improvement_opportunities"]:
        console.print("  • " + item)


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Settings YAML path."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show configuration and database status."""
    _setup_logging(verbose)
    from heatmappro.config import load_settings
    from heatmappro.modules.geo_grid.sampler import parse_grid_size

    console.print(Panel("[bold cyan]System Status[/bold cyan]"))
    table = Table(title="Component Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=20)
    table.add_column("Status", min_width=10)
    table.add_column("Details", max_width=50)

    settings = load_settings(config)
    if Path(config).exists():
        table.add_row("Configuration", "[green]✔ OK[/green]", config)
    else:
        table.add_row("Configuration", "[yellow]⚠ Missing[/yellow]", "using defaults")

    try:
        rows, cols = parse_grid_size(settings.grid.default_size)
        table.add_row("Grid", "[green]✔ OK[/green]", f"{rows}x{cols} default")
    except GridConfigError as exc:
        table.add_row("Grid", "[red]✘ Error[/red]", str(exc)[:50])

    try:
        from heatmappro.database import database_status, init_db
        db_cfg = settings.raw["database"]
        init_db(database_url=db_cfg.get("url"), echo=False)
        info = database_status()
        detail = ", ".join(name + "=" + str(count) for name, count in info["tables"].items())
        table.add_row("Database", "[green]✔ OK[/green]", detail)
    except Exception as exc:
        table.add_row("Database", "[red]✘ Error[/red]", str(exc)[:50])

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
