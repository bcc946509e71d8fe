"""CLI entry-point: run extractions and inspect jobs without the HTTP server."""

import json
import logging

import typer
from rich.console import Console
from rich.table import Table

from pva.config import get_settings
from pva.db.session import get_engine, get_session_factory, init_db
from pva.ingest.fetcher import validate_url
from pva.jobs.models import JobNotFoundError
from pva.jobs.store import JobStore
from pva.pipeline.extractor import ProductDataExtractor
from pva.pipeline.runner import run_extraction_job

app = typer.Typer(help="Product Value Analyzer: extract product variants and rank them by price per unit")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@app.command("init-db")
def init_db_command():
    """Create database tables."""
    console = Console()
    settings = get_settings()
    init_db(get_engine())
    console.print(f"[green]Database ready:[/green] {settings.database_url}")


def _print_product(console: Console, product: dict) -> None:
    table = Table(title=f"{product['name']} ({product['variants_count']} variants)")
    table.add_column("Variant")
    table.add_column("Quantity")
    table.add_column("Price", justify="right")
    table.add_column("Per unit", justify="right")
    table.add_column("Rank", justify="right")
    table.add_column("Savings vs worst", justify="right")
    for v in product["variants"]:
        savings = v["savings_vs_worst"]
        name = f"[bold green]{v['name']}[/bold green]" if v["is_best_value"] else v["name"]
        table.add_row(
            name,
            v["quantity_text"],
            v["price_display"],
            v["price_per_unit_display"],
            str(v["value_rank"]) if v["value_rank"] is not None else "N/A",
            f"{savings['savings_display']} ({savings['savings_percentage']}%)" if savings else "N/A",
        )
    console.print(table)
    best = product.get("best_value_variant")
    if best:
        console.print(f"Best value: [bold]{best['name']}[/bold] at {best['price_per_unit_display']}")


@app.command()
def extract(
    url: str = typer.Argument(..., help="Product page URL"),
    as_json: bool = typer.Option(False, "--json", help="Print the job snapshot as JSON"),
):
    """Queue and run an extraction for URL in this process, then print the result."""
    console = Console()
    error = validate_url(url)
    if error:
        console.print(f"[red]Error: {error}[/red]")
        raise typer.Exit(1)

    session_factory = get_session_factory()
    store = JobStore(session_factory)
    extractor = ProductDataExtractor.from_settings(get_settings(), session_factory)
    job = store.create(url)
    console.print(f"Job {job.id} queued for {url}")

    with console.status("Extracting product data..."):
        run_extraction_job(job.id, store, extractor)

    snap = store.snapshot(job.id)
    if as_json:
        console.print_json(snap.model_dump_json())
    elif snap.product:
        _print_product(console, snap.product)
    if snap.error_message:
        console.print(f"[red]Extraction failed:[/red] {snap.error_message}")
        raise typer.Exit(1)


@app.command()
def status(job_id: str = typer.Argument(..., help="Extraction job id (job_...)")):
    """Show the current state of an extraction job."""
    console = Console()
    try:
        snap = JobStore(get_session_factory()).snapshot(job_id)
    except JobNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"{snap.id}: {snap.status_display} ({snap.progress_display})")
    if snap.product:
        _print_product(console, snap.product)
    if snap.error_message:
        console.print(f"[red]{snap.error_message}[/red]")


@app.command()
def health():
    """Check AI key configuration and database connectivity."""
    console = Console()
    extractor = ProductDataExtractor.from_settings(get_settings(), get_session_factory())
    report = extractor.health_check()
    console.print_json(json.dumps(report))
    if report["overall_status"] != "ready":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
