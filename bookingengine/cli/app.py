"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.table import Table

from ..adapters.yaml_snapshot import YamlSnapshotProvider, read_snapshot
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityService
from ..domain.exceptions import BookingEngineError
from ..domain.models import Proposal
from ..domain.results import Severity
from ..services.booking_service import BookingService

app = typer.Typer(
    name="bookingengine",
    help="List open booking slots and check proposed bookings against a snapshot",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
SnapshotOption = Annotated[Optional[Path], typer.Option("--snapshot", "-s", help="Path to snapshot YAML. Overrides snapshot_path from the config.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _load(config_file: Optional[Path], snapshot: Optional[Path], verbose: bool) -> Tuple[AppConfig, Path]:
    """
    Load configuration, set up logging and resolve the snapshot path.

    A missing default config file is fine when --snapshot is given.
    """
    config_path = config_file or get_default_config_path()
    if config_file is not None or config_path.exists():
        config = AppConfig.load_from_yaml(config_path)
    else:
        config = AppConfig()

    logging.basicConfig(
        level=logging.DEBUG if verbose else config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    snapshot_path = snapshot or config.resolve_snapshot_path(config_path)
    if snapshot_path is None:
        raise FileNotFoundError("No snapshot given. Use --snapshot or set snapshot_path in the config.")

    return config, snapshot_path


def _parse_date(value: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError as e:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD: {e}") from e


def _parse_datetime(value: str, tz: str) -> DateTime:
    """Parse a date and time; values without an offset are read in ``tz``."""
    try:
        parsed = pendulum.parse(value, tz=tz, exact=True)
    except ValueError as e:
        raise ValueError(f"Invalid date/time {value!r}: {e}") from e
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Expected a date and time such as '2024-11-25 14:00', got {value!r}")
    return parsed


def _service(config: AppConfig, snapshot_path: Path) -> BookingService:
    availability = AvailabilityService(granularity_minutes=config.slots.granularity_minutes)
    return BookingService(YamlSnapshotProvider(snapshot_path), availability=availability)


@app.command()
def slots(
    service_id: Annotated[str, typer.Argument(help="Service id")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    staff: Annotated[Optional[str], typer.Option("--staff", help="Only slots for this staff member")] = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
    verbose: VerboseOption = False,
):
    """
    List open slots for a service on a date.

    The listing is advisory; run `check` before committing a booking.
    """
    try:
        config, snapshot_path = _load(config_file, snapshot, verbose)
        target_day = _parse_date(day)

        found = asyncio.run(
            _service(config, snapshot_path).list_available_slots(
                service_id=service_id, day=target_day, staff_id=staff
            )
        )

        if not found:
            console.print(f"[yellow]⚠ No open slots for {service_id} on {target_day.isoformat()}.[/yellow]")
            return

        table = Table(
            title=f"Open slots for {service_id} on {target_day.isoformat()}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Start", style="bold yellow")
        table.add_column("End")
        table.add_column("Staff", style="dim")
        table.add_column("Remaining", justify="right")

        for slot in found:
            table.add_row(
                slot.window.start.format("HH:mm"),
                slot.window.end.format("HH:mm"),
                ", ".join(slot.eligible_staff_ids) or "-",
                str(slot.remaining_capacity),
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    service_id: Annotated[str, typer.Option("--service", help="Service id")],
    customer_id: Annotated[str, typer.Option("--customer", help="Customer id")],
    start: Annotated[str, typer.Option("--start", help="Start (YYYY-MM-DD HH:mm), in the snapshot timezone unless an offset is given")],
    end: Annotated[str, typer.Option("--end", help="End (YYYY-MM-DD HH:mm)")],
    staff: Annotated[Optional[str], typer.Option("--staff", help="Staff id")] = None,
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Booking id to ignore, e.g. when rescheduling it")] = None,
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
    verbose: VerboseOption = False,
):
    """
    Check whether a proposed booking can proceed. Exits with 1 if it cannot.
    """
    try:
        config, snapshot_path = _load(config_file, snapshot, verbose)
        tz = read_snapshot(snapshot_path).timezone
        proposal = Proposal(
            service_id=service_id,
            customer_id=customer_id,
            staff_id=staff,
            start=_parse_datetime(start, tz),
            end=_parse_datetime(end, tz),
            exclude_booking_id=exclude,
        )

        result = asyncio.run(_service(config, snapshot_path).admit(proposal))

    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    for conflict in result.conflicts:
        colour = "red" if conflict.severity is Severity.ERROR else "yellow"
        related = f" [dim]({conflict.related_booking_id})[/dim]" if conflict.related_booking_id else ""
        console.print(f"  [{colour}]{conflict.severity.value}[/{colour}] {conflict.kind.value}: {conflict.message}{related}")

    if result.can_proceed:
        console.print("[bold green]✓ Booking can proceed[/bold green]\n")
    else:
        console.print("[bold red]✗ Booking cannot proceed[/bold red]\n")
        raise typer.Exit(1)


@app.command()
def hours(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
    verbose: VerboseOption = False,
):
    """
    Show whether the business is open on a date.
    """
    try:
        config, snapshot_path = _load(config_file, snapshot, verbose)
        context = read_snapshot(snapshot_path)
        business_day = AvailabilityService().business_hours(_parse_date(day), context)
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    colour = "green" if business_day.is_open else "yellow"
    console.print(f"\n[{colour}]{business_day.reason}[/{colour}]\n")


@app.command()
def staff_day(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    snapshot: SnapshotOption = None,
    verbose: VerboseOption = False,
):
    """
    Show working hours and time off of every active staff member on a date.
    """
    try:
        config, snapshot_path = _load(config_file, snapshot, verbose)
        context = read_snapshot(snapshot_path)
        days = AvailabilityService().staff_day(_parse_date(day), context)
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Staff on {day}", show_header=True, header_style="bold cyan")
    table.add_column("Staff", style="bold yellow")
    table.add_column("Hours")
    table.add_column("Time off", style="dim")

    for entry in days:
        name = context.staff[entry.staff_id].name or entry.staff_id
        if entry.scheduled is None:
            working, time_off = "not scheduled", "-"
        elif entry.all_day_off:
            working, time_off = "-", "all day"
        else:
            working = f"{entry.scheduled.start.format('HH:mm')}-{entry.scheduled.end.format('HH:mm')}"
            time_off = ", ".join(
                f"{w.start.format('HH:mm')}-{w.end.format('HH:mm')}" for w in entry.exclusions
            ) or "-"
        table.add_row(name, working, time_off)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
