"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.backend_client import BackendClient
from ..adapters.mock_backend_client import MockBackendClient
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityCalculator
from ..domain.exceptions import BookingValidationError, SalonBookError
from ..domain.models import PaymentInstruction
from ..domain.payments import PaymentInstructionStore
from ..domain.timeofday import format_12_hour
from ..services.booking import SELECTION_INVALIDATED_MESSAGE, BookingService
from ..services.payments import PAYMENT_TYPE_BOOKING, PAYMENT_TYPE_RESCHEDULE, PaymentService
from ..services.queue import QueueTracker

app = typer.Typer(
    name="salonbook",
    help="Book salon appointments, confirm GCash payments and follow the walk-in queue",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled sample data instead of the hosted backend."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Salon booking command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """Load the config file; mock runs fall back to defaults when there is none."""
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _build_backend(config: AppConfig, mock: bool):
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using sample data[/yellow]\n")
        return MockBackendClient()

    if not config.backend.is_configured():
        raise typer.BadParameter(
            "backend.url and backend.api_key must be set in the config file (or use --mock)."
        )
    return BackendClient(
        base_url=config.backend.url,
        api_key=config.backend.api_key,
        timeout=config.backend.timeout_seconds,
    )


def _build_booking_service(config: AppConfig, backend) -> BookingService:
    calculator = AvailabilityCalculator(window=config.booking.to_window())
    return BookingService(backend=backend, calculator=calculator)


def _build_payment_service(config: AppConfig, backend) -> PaymentService:
    store = PaymentInstructionStore(path=config.payment_store_path())
    store.purge_expired()
    return PaymentService(backend=backend, store=store, config=config)


def _parse_date(value: str, tz: str) -> str:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).to_date_string()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _print_payment_instruction(instruction: PaymentInstruction) -> None:
    recipient = instruction.recipient
    booking = instruction.appointment
    console.print(Panel.fit(
        f"[bold]Send:[/bold] {instruction.currency} {instruction.amount:,.2f} via GCash\n"
        f"[bold]To:[/bold] {recipient.get('gcash_number') or 'N/A'} "
        f"({recipient.get('gcash_name') or recipient.get('business_name')})\n"
        f"[bold]Message:[/bold] \"{instruction.reference_number}\"\n\n"
        f"[bold]Appointment:[/bold] {booking.date} {booking.time} - {', '.join(booking.selected_services)}\n"
        f"[bold]Expires:[/bold] {instruction.expires_at.format('YYYY-MM-DD HH:mm')}\n\n"
        f"After paying, run:\n"
        f"  salonbook confirm-payment {instruction.reference_number} <GCASH-REFERENCE>",
        title=f"GCash payment ({instruction.payment_type})"
    ))


@app.command()
def services(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List the service catalogue with prices.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_booking_service(config, _build_backend(config, mock))
        categories, services_by_category = booking.load_services()

        table = Table(title="Services", show_header=True, header_style="bold cyan")
        table.add_column("Category", style="bold yellow")
        table.add_column("Service (use this name when booking)")
        table.add_column("Price", justify="right")

        for category in categories:
            for service in services_by_category.get(category.db_category, []):
                table.add_row(
                    category.label,
                    service.display_name,
                    f"{config.payment.currency} {service.price:,.2f}",
                )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def times(
    date: Annotated[str, typer.Argument(help="Appointment date (YYYY-MM-DD)")],
    selected: Annotated[Optional[str], typer.Option("--selected", help="Previously selected time (HH:MM) to re-check")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show which appointment times are taken and which are still free on a date.
    """
    try:
        config = _load_config(config_file, mock)
        booking = _build_booking_service(config, _build_backend(config, mock))
        day = _parse_date(date, config.timezone)

        selection = booking.load_time_selection(day)
        if not selection.is_available:
            console.print(f"[yellow]⚠ {selection.error}[/yellow]")
            raise typer.Exit(1)

        console.print(f"[bold cyan]Times for {day}[/bold cyan]")
        disabled = sorted(selection.disabled_times)
        console.print(f"   Taken: {', '.join(disabled) if disabled else 'none'}")
        if selection.available_times:
            console.print(
                "   Free start times: "
                + ", ".join(format_12_hour(t) for t in selection.available_times)
            )
        else:
            console.print("[yellow]   No free start times on this date.[/yellow]")

        if selected is not None:
            if booking.reconcile_selected_time(selected, selection.disabled_times) is None:
                console.print(f"\n[yellow]⚠ {SELECTION_INVALIDATED_MESSAGE}[/yellow]")
            else:
                console.print(f"\n[green]✓ {selected} is still available[/green]")
        console.print()

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def book(
    name: Annotated[str, typer.Option("--name", help="Customer name")],
    date: Annotated[str, typer.Option("--date", help="Appointment date (YYYY-MM-DD)")],
    time_of_day: Annotated[str, typer.Option("--time", help="Start time (HH:MM)")],
    service: Annotated[List[str], typer.Option("--service", "-s", help="Service name as shown by 'services'; repeatable")],
    phone: Annotated[str, typer.Option("--phone", help="PH mobile number for SMS reminders")] = "",
    email: Annotated[str, typer.Option("--email", help="Email address for reminders")] = "",
    reschedule: Annotated[Optional[str], typer.Option("--reschedule", help="Id of an appointment to move instead of booking a new one")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Validate a booking and issue the GCash payment instruction for its fee.

    Examples:

        salonbook book --name "Maria Santos" --phone 09171234567 \\
            --date 2026-11-02 --time 15:00 -s "Haircut - Hair Care"
    """
    try:
        config = _load_config(config_file, mock)
        backend = _build_backend(config, mock)
        booking = _build_booking_service(config, backend)
        payments = _build_payment_service(config, backend)

        request = booking.prepare_booking(
            name=name,
            phone=phone,
            email=email,
            date=_parse_date(date, config.timezone),
            time_of_day=time_of_day,
            selected_services=service,
            wants_sms=bool(phone),
            wants_email=bool(email),
            rescheduling=reschedule is not None,
        )

        console.print("[bold cyan]📊 Summary:[/bold cyan]")
        console.print(f"   Name: {request.name}")
        console.print(f"   When: {request.date} at {format_12_hour(request.time)}")
        console.print(f"   Services: {', '.join(request.selected_services)}")
        console.print(f"   Total: {config.payment.currency} {request.total_price:,.2f}\n")

        instruction = payments.request_payment(
            request,
            payment_type=PAYMENT_TYPE_RESCHEDULE if reschedule is not None else PAYMENT_TYPE_BOOKING,
            appointment_id=reschedule,
        )
        _print_payment_instruction(instruction)

    except BookingValidationError as e:
        console.print("[bold red]Please fix the following:[/bold red]")
        for field_name, message in e.errors.items():
            console.print(f"   {field_name}: {message}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def confirm_payment(
    reference_number: Annotated[str, typer.Argument(help="Payment reference issued by 'book' or 'cancel'")],
    gcash_reference: Annotated[str, typer.Argument(help="Transaction reference from your GCash app")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Submit the GCash transaction reference and complete the booking, reschedule or cancellation.
    """
    try:
        config = _load_config(config_file, mock)
        payments = _build_payment_service(config, _build_backend(config, mock))

        result = payments.confirm(reference_number, gcash_reference)

        console.print(f"\n[bold green]✓ {result.message}[/bold green]")
        if result.appointment is not None:
            console.print(f"   Appointment id: {result.appointment.id}")
            console.print(f"   Status: {result.appointment.status}")
        console.print()

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Id of the appointment to cancel")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Issue the GCash payment instruction for a cancellation fee.
    """
    try:
        config = _load_config(config_file, mock)
        payments = _build_payment_service(config, _build_backend(config, mock))

        instruction = payments.request_cancellation(appointment_id)
        _print_payment_instruction(instruction)

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


def _print_queue(tracker: QueueTracker) -> None:
    if tracker.error:
        console.print(f"[red]Failed to load queue data: {tracker.error}[/red]")

    waiting = tracker.waiting
    console.print(f"[bold cyan]Now serving: #{tracker.current_serving}[/bold cyan]")
    console.print(f"Total in queue: {len(waiting)}\n")

    if not waiting:
        console.print("[dim]The queue is empty.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("QR code")
    table.add_column("Est. wait", justify="right")
    for entry in waiting:
        table.add_row(str(entry.position), entry.qr_code, f"{entry.estimated_wait_time} min")
    console.print(table)


def _redraw_queue(tracker: QueueTracker) -> None:
    console.clear()
    _print_queue(tracker)


@app.command()
def queue(
    watch: Annotated[bool, typer.Option("--watch", "-w", help="Keep refreshing until interrupted.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the walk-in queue.
    """
    try:
        config = _load_config(config_file, mock)
        tracker = QueueTracker(
            backend=_build_backend(config, mock),
            minutes_per_customer=config.queue.minutes_per_customer,
        )

        if watch:
            tracker.poll(
                config.queue.poll_interval_seconds,
                on_update=_redraw_queue,
            )
        else:
            tracker.refresh()
            _print_queue(tracker)

    except KeyboardInterrupt:
        console.print()

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def join_queue(
    qr_code: Annotated[Optional[str], typer.Option("--qr", help="Walk-in QR code (APPT-XXXXXX); generated if omitted")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="Phone number for SMS reminders")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Email address for reminders")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Join the walk-in queue.
    """
    try:
        config = _load_config(config_file, mock)
        tracker = QueueTracker(
            backend=_build_backend(config, mock),
            minutes_per_customer=config.queue.minutes_per_customer,
        )

        if qr_code:
            entry = tracker.join(qr_code, phone=phone, email=email)
        else:
            entry = tracker.auto_join(phone=phone, email=email)

        console.print(Panel.fit(
            f"[bold green]You're in the queue! 🎉[/bold green]\n\n"
            f"[bold]Position:[/bold] #{entry.position}\n"
            f"[bold]Estimated wait:[/bold] {entry.estimated_wait_time} minutes\n"
            f"[bold]QR code:[/bold] {entry.qr_code}",
            title="Walk-in queue"
        ))

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def feedback(
    rating: Annotated[int, typer.Argument(min=1, max=5, help="Rating from 1 to 5")],
    comment: Annotated[str, typer.Option("--comment", help="Optional comment")] = "",
    from_user: Annotated[Optional[str], typer.Option("--from", help="Your name")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Leave feedback for the salon.
    """
    try:
        config = _load_config(config_file, mock)
        _build_backend(config, mock).add_feedback(rating, comment, from_user)
        console.print("\n[green]✓ Thank you for your feedback![/green]\n")

    except (FileNotFoundError, ValueError, SalonBookError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
