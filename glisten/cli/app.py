"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.booking_store import JsonBookingStore
from ..adapters.distance_matrix import GoogleDistanceMatrixClient
from ..adapters.graph_authenticator import GraphAuthenticator, token_cache_store
from ..adapters.graph_client import GraphCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..adapters.static_travel import StaticTravelTimeProvider
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingValidationError, GlistenError
from ..domain.models import BookingStatus, ServiceItem, VehicleSize, parse_date
from ..services.bookings import BookingRequest, BookingService
from ..services.scheduler import SchedulingService

app = typer.Typer(
    name="glisten",
    help="Appointment scheduling for a mobile car-detailing service",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
MockOption = Annotated[
    bool, typer.Option("--mock", help="Use the mock calendar and the static travel table.")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]
ServiceOption = Annotated[
    Optional[List[str]],
    typer.Option("--service", "-s", help="Service as id[:size[:quantity]], e.g. full-valet:large"),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        return AppConfig.load_from_yaml(config_file or get_default_config_path())
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date_arg(value: str, label: str):
    try:
        return parse_date(value)
    except ValueError as e:
        console.print(f"[red]Could not parse {label}: {e}[/red]")
        raise typer.Exit(1)


def _parse_services(values: Optional[List[str]]) -> List[ServiceItem]:
    try:
        return [ServiceItem.parse(value) for value in values or []]
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _build_calendar_client(config: AppConfig, mock: bool):
    calendar = config.calendar
    if mock or calendar.provider == "mock":
        return MockCalendarClient(data_file=calendar.mock_data_file, timezone=config.timezone)
    if calendar.provider == "graph":
        authenticator = GraphAuthenticator(
            client_id=calendar.client_id,
            tenant_id=calendar.tenant_id,
            authority_url=calendar.get_authority_url(),
        )
        return GraphCalendarClient(
            access_token=authenticator.get_access_token(),
            mailbox=calendar.mailbox,
            timezone=config.timezone,
        )
    return None


def _build_travel_provider(config: AppConfig, mock: bool):
    travel = config.travel
    if mock or travel.provider == "static":
        return StaticTravelTimeProvider(travel.static_times)
    return GoogleDistanceMatrixClient(
        api_key=travel.api_key,
        region=travel.region,
        request_timeout=config.scheduling.provider_timeout_seconds,
    )


def _build_services(
    config_file: Optional[Path],
    mock: bool,
    verbose: bool,
) -> Tuple[AppConfig, JsonBookingStore, SchedulingService]:
    _configure_logging(verbose)
    config = _load_config(config_file)

    if mock:
        console.print("[yellow]⚠  MOCK MODE: using test calendar and travel data[/yellow]\n")

    try:
        store = JsonBookingStore(config.bookings_file)
        scheduler = SchedulingService.from_config(
            config,
            booking_store=store,
            travel_provider=_build_travel_provider(config, mock),
            calendar_client=_build_calendar_client(config, mock),
        )
    except GlistenError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    return config, store, scheduler


def _report_rejection(error: BookingValidationError) -> None:
    console.print(f"[bold red]✗ Rejected:[/bold red] {error.reason.value}")
    if error.detail:
        console.print(f"  [dim]{error.detail}[/dim]")


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    postcode: Annotated[str, typer.Argument(help="Customer postcode")],
    service: ServiceOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List feasible start times for a date.

    Examples:

        glisten slots 2025-03-03 "AB1 2CD" -s full-valet:large
        glisten slots 2025-03-03 AB12CD -s exterior-wash -s engine-bay --mock
    """
    day = _parse_date_arg(date, "date")
    items = _parse_services(service)
    _, _, scheduler = _build_services(config_file, mock, verbose)

    try:
        result = asyncio.run(scheduler.find_slots(day, postcode, items))
    except (ValueError, GlistenError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    duration = scheduler.estimator.estimate(items)
    console.print(
        f"[bold cyan]📅 {result.date.strftime('%A %d %B %Y')}[/bold cyan]"
        f"  ({duration} min + {scheduler.config.buffer_after_job_minutes} min buffer)"
    )
    if not result.has_slots:
        console.print("[yellow]⚠ No feasible slots on this day.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(result.slots)} slot(s) available:[/bold green]")
    console.print("  " + "  ".join(result.slots))


@app.command()
def check(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    postcode: Annotated[str, typer.Argument(help="Customer postcode")],
    service: ServiceOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Check whether a single appointment could be booked.
    """
    items = _parse_services(service)
    _, _, scheduler = _build_services(config_file, mock, verbose)

    try:
        asyncio.run(scheduler.validate(date, postcode, items, time))
    except BookingValidationError as e:
        _report_rejection(e)
        raise typer.Exit(2)
    except GlistenError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓ {date} at {time} is available for {postcode}[/bold green]")


def _determine_date_range(
    *,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str],
    tz: str,
):
    """Resolve the search window from shortcut flags or explicit dates."""
    if this_week and next_week:
        console.print("[red]Error: --this-week and --next-week cannot be combined.[/red]")
        raise typer.Exit(1)

    today = pendulum.today(tz).date()

    if this_week:
        return today, today.end_of("week")

    if next_week:
        next_monday = today.next(pendulum.MONDAY)
        return next_monday, next_monday.add(days=6)

    start_date = _parse_date_arg(start_option, "start date") if start_option else today
    end_date = _parse_date_arg(end_option, "end date") if end_option else start_date.add(days=13)
    return start_date, end_date


@app.command()
def availability(
    postcode: Annotated[str, typer.Argument(help="Customer postcode")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    this_week: Annotated[bool, typer.Option("--this-week", help="From today to the end of this week.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="Next week, Monday to Sunday.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show which days are workable for a postcode.
    """
    config, _, scheduler = _build_services(config_file, mock, verbose)
    start_date, end_date = _determine_date_range(
        this_week=this_week,
        next_week=next_week,
        start_option=start,
        end_option=end,
        tz=config.timezone,
    )

    try:
        days = asyncio.run(scheduler.range_availability(postcode, start_date, end_date))
    except (ValueError, GlistenError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Availability for {postcode}", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold")
    table.add_column("Day")
    table.add_column("In area")
    for day in days:
        marker = "[green]✓[/green]" if day.in_area else "[red]✗[/red]"
        table.add_row(day.date.isoformat(), day.date.strftime("%A"), marker)

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    date: Annotated[str, typer.Option("--date", help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", help="Start time (HH:MM)")],
    postcode: Annotated[str, typer.Option("--postcode", help="Customer postcode")],
    service: ServiceOption = None,
    name: Annotated[str, typer.Option("--name")] = "",
    email: Annotated[str, typer.Option("--email")] = "",
    phone: Annotated[str, typer.Option("--phone")] = "",
    car_make: Annotated[str, typer.Option("--car-make")] = "",
    car_model: Annotated[str, typer.Option("--car-model")] = "",
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Create a pending booking after checking the slot.
    """
    items = _parse_services(service)
    _, store, scheduler = _build_services(config_file, mock, verbose)
    booking_service = BookingService(store, scheduler)

    request = BookingRequest(
        postcode=postcode,
        preferred_date=date,
        preferred_time=time,
        services=items,
        name=name,
        email=email,
        phone=phone,
        car_make=car_make,
        car_model=car_model,
    )
    try:
        booking = asyncio.run(booking_service.create_booking(request))
    except BookingValidationError as e:
        _report_rejection(e)
        raise typer.Exit(2)
    except GlistenError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Booking created[/bold green]\n\n"
        f"[bold]ID:[/bold] {booking.id}\n"
        f"[bold]When:[/bold] {booking.preferred_date.isoformat()} {booking.preferred_time}\n"
        f"[bold]Where:[/bold] {booking.postcode}\n"
        f"[bold]Status:[/bold] {booking.status.value}",
        title="Booking",
    ))


@app.command()
def amend(
    booking_id: Annotated[int, typer.Argument(help="Booking ID")],
    new_date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    new_time: Annotated[str, typer.Argument(help="New start time (HH:MM)")],
    message: Annotated[str, typer.Option("--message", "-m", help="Note for the technician")] = "",
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Request to move an existing booking.
    """
    _, store, scheduler = _build_services(config_file, mock, verbose)
    booking_service = BookingService(store, scheduler)

    try:
        amendment = asyncio.run(
            booking_service.request_amendment(booking_id, new_date, new_time, message)
        )
    except BookingValidationError as e:
        _report_rejection(e)
        raise typer.Exit(2)
    except GlistenError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[green]✓ Amendment {amendment.id} recorded: booking {booking_id} → "
        f"{amendment.new_date.isoformat()} {amendment.new_time}[/green]"
    )


@app.command()
def status(
    booking_id: Annotated[int, typer.Argument(help="Booking ID")],
    new_status: Annotated[BookingStatus, typer.Argument(help="New status")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Confirm, decline or cancel a booking.
    """
    _configure_logging(verbose)
    config = _load_config(config_file)

    try:
        store = JsonBookingStore(config.bookings_file)
        # Status changes never consult the calendar or travel times
        scheduler = SchedulingService.from_config(config, store, StaticTravelTimeProvider())
        booking = asyncio.run(BookingService(store, scheduler).update_status(booking_id, new_status))
    except GlistenError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Booking {booking.id} is now {booking.status.value}[/green]")


@app.command()
def services(config_file: ConfigOption = None):
    """
    List the service catalog with durations.
    """
    config = _load_config(config_file)

    table = Table(title="Service catalog (minutes)", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="bold yellow")
    for size in VehicleSize:
        table.add_column(size.value.capitalize(), justify="right")

    for service_id, sizes in sorted(config.services.items()):
        table.add_row(service_id, *[str(sizes.get(size.value, "-")) for size in VehicleSize])

    console.print()
    console.print(table)
    console.print(
        f"[dim]Unknown services count as {config.scheduling.fallback_service_minutes} min; "
        f"every job is followed by a {config.scheduling.buffer_after_job_minutes} min buffer.[/dim]\n"
    )


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph calendar authentication.
    """
    config = _load_config(config_file)
    calendar = config.calendar
    if calendar.provider != "graph":
        console.print("[yellow]Calendar provider is not 'graph'; nothing to test.[/yellow]")
        raise typer.Exit(1)

    try:
        authenticator = GraphAuthenticator(
            client_id=calendar.client_id,
            tenant_id=calendar.tenant_id,
            authority_url=calendar.get_authority_url(),
        )
        client = GraphCalendarClient(
            access_token=authenticator.get_access_token(force_refresh=force),
            mailbox=calendar.mailbox,
            timezone=config.timezone,
        )
        user_info = client.test_connection()
    except GlistenError as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Authentication successful![/bold green]\n\n"
        f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
        f"[bold]Email:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}\n"
        f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
        title="✓ Connection test",
    ))


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the calendar token cache.
    """
    config = _load_config(config_file)
    token_cache_store(config.calendar.client_id, config.calendar.tenant_id).clear()
    console.print("\n[green]✓ Token cache cleared.[/green]")
    console.print("You will need to sign in again on the next calendar lookup.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]glisten[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
