"""CLI commands for clinic_ops."""

import asyncio
import json
import uuid
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.config import get_settings
from clinic_ops.core.database import Database
from clinic_ops.core.errors import ClinicOpsError

app = typer.Typer(
    name="clinic-ops",
    help="Bookability, availability and engagement tooling for the clinic database",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


def _parse_uuid(value: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {name}: {value}[/red]")
        raise typer.Exit(1)


def _parse_date(value: Optional[str], name: str) -> date:
    if value is None:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Invalid {name}: {value}. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)


def _run(work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run *work* in one committed session against the configured database."""

    async def runner() -> T:
        database = Database(get_settings().database_url)
        try:
            async with database.session() as session:
                return await work(session)
        finally:
            await database.dispose()

    try:
        return asyncio.run(runner())
    except ClinicOpsError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command("sanity-check")
def sanity_check(
    payer_id: str = typer.Argument(..., help="Payer UUID"),
    check_date: Optional[str] = typer.Option(None, "--date", "-d", help="Check date (YYYY-MM-DD)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Run the payer contract sanity checks and print the report."""
    from clinic_ops.bookability import PayerSanityCheckService

    pid = _parse_uuid(payer_id, "payer_id")
    on = _parse_date(check_date, "date")
    results = _run(lambda session: PayerSanityCheckService(session).run_all_checks(pid, on))

    if output_json:
        console.print_json(results.model_dump_json())
    else:
        console.print(PayerSanityCheckService.generate_summary_report(results), markup=False)

    if results.has_errors:
        raise typer.Exit(2)


@app.command()
def bookable(
    payer_id: str = typer.Argument(..., help="Payer UUID"),
    service_date: Optional[str] = typer.Option(None, "--date", "-d", help="Service date (YYYY-MM-DD)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List providers bookable for a payer on a date."""
    from clinic_ops.bookability import BookabilityResolver

    pid = _parse_uuid(payer_id, "payer_id")
    on = _parse_date(service_date, "date")
    providers = _run(lambda session: BookabilityResolver(session).bookable_providers(pid, on))

    if output_json:
        console.print_json(json.dumps([p.model_dump(mode="json") for p in providers]))
        return

    if not providers:
        console.print(f"[yellow]No providers are bookable for this payer on {on}[/yellow]")
        return

    table = Table(title=f"Bookable Providers ({on})")
    table.add_column("Provider")
    table.add_column("Role")
    table.add_column("Path")
    table.add_column("Supervising Attendings")
    for p in providers:
        table.add_row(p.full_name, p.role or "", p.path.value, ", ".join(p.supervising_attendings))
    console.print(table)


@app.command()
def slots(
    provider_id: str = typer.Argument(..., help="Provider UUID"),
    start: str = typer.Option(..., "--start", "-s", help="Start date (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", "-e", help="End date (YYYY-MM-DD)"),
    duration: Optional[int] = typer.Option(None, "--duration", help="Appointment minutes"),
):
    """Show a provider's open slots over a date range."""
    from clinic_ops.scheduling import AvailabilityService

    pid = _parse_uuid(provider_id, "provider_id")
    start_date = _parse_date(start, "start")
    end_date = _parse_date(end, "end")
    report = _run(
        lambda session: AvailabilityService(session).get_available_slots(pid, start_date, end_date, duration)
    )

    if report.load_status.degraded:
        console.print("[yellow]Warning: some schedule inputs failed to load; results may be incomplete[/yellow]")

    table = Table(title=f"{report.provider_name}: {len(report.slots)} slot(s), {report.duration} min")
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Time")
    for slot in report.slots:
        table.add_row(slot.date.isoformat(), slot.date.strftime("%a"), slot.time)
    console.print(table)


@app.command("init-db")
def init_db():
    """Create all tables (development databases only)."""

    async def create() -> None:
        database = Database(get_settings().database_url)
        try:
            await database.create_all()
        finally:
            await database.dispose()

    asyncio.run(create())
    console.print("[green]Tables created[/green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"Starting clinic_ops API server on {host}:{port}")
    uvicorn.run(
        "clinic_ops.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    app()
