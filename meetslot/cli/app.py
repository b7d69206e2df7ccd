"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, NoReturn, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarRepository
from ..adapters.json_store import JsonCalendarStore
from ..config import AppConfig
from ..domain.clock import SystemClock
from ..domain.exceptions import MeetslotError, NoAvailableSlotError, ValidationError
from ..domain.models import ScheduleRequest
from ..domain.scoring import SlotScorer
from ..domain.slot_enumerator import SlotEnumerator
from ..domain.slot_finder import SlotFinder
from ..domain.validation import RequestValidator
from ..services.scheduler import CalendarRepository, SchedulerService

app = typer.Typer(
    name="meetslot",
    help="Find and book the best meeting slot for a group of participants",
    add_completion=False,
)

console = Console()

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_INVALID_REQUEST = 2
EXIT_NO_SLOT = 3

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Find and book meeting slots.
    """
    configure_logging(verbose)


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        return AppConfig.load(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)


def _open_json_store(config: AppConfig) -> JsonCalendarStore:
    if config.store.backend != "json":
        console.print("[red]This command needs the JSON store backend.[/red]")
        raise typer.Exit(EXIT_ERROR)
    return JsonCalendarStore(config.store.path)


def _build_authenticator(config: AppConfig) -> GraphAuthenticator:
    if config.graph is None:
        console.print("[red]No 'graph' section in the configuration.[/red]")
        raise typer.Exit(EXIT_ERROR)
    return GraphAuthenticator(
        client_id=config.graph.client_id,
        tenant_id=config.graph.tenant_id,
        authority_url=config.graph.get_authority_url(),
    )


def _build_repository(config: AppConfig) -> CalendarRepository:
    if config.store.backend == "graph":
        access_token = _build_authenticator(config).get_access_token()
        return GraphCalendarRepository(access_token=access_token)
    return JsonCalendarStore(config.store.path)


def _build_service(config: AppConfig, repository: CalendarRepository) -> SchedulerService:
    clock = SystemClock()
    slot_finder = SlotFinder(
        enumerator=SlotEnumerator(step_minutes=config.search.step_minutes),
        scorer=SlotScorer(weights=config.scoring.to_weights(), timezone=config.timezone),
    )
    return SchedulerService(
        repository=repository,
        validator=RequestValidator(clock=clock),
        slot_finder=slot_finder,
        clock=clock,
        default_title=config.defaults.title,
        max_concurrent_fetches=config.search.max_concurrent_fetches,
        search_timeout_seconds=config.search.search_timeout_seconds,
    )


def _parse_instant(value: str, tz: str) -> DateTime:
    """Parse an ISO 8601 date or datetime; naive values are read in ``tz``."""
    try:
        parsed = pendulum.parse(value, tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(EXIT_ERROR)

    if not isinstance(parsed, DateTime):
        console.print(f"[red]'{value}' is not a date or datetime.[/red]")
        raise typer.Exit(EXIT_ERROR)
    return parsed.in_timezone("UTC")


def _next_quarter_hour(now: DateTime) -> DateTime:
    rounded = now.add(minutes=15 - now.minute % 15)
    return rounded.set(second=0, microsecond=0)


def _determine_window(
    config: AppConfig,
    start_option: Optional[str],
    end_option: Optional[str],
) -> tuple[DateTime, DateTime]:
    """
    Resolve the search window from explicit dates or the configured defaults.

    Without --start the window opens at the next quarter hour; without --end it
    spans ``defaults.window_days`` days.
    """
    if start_option:
        start = _parse_instant(start_option, config.timezone)
    else:
        start = _next_quarter_hour(pendulum.now("UTC"))

    if end_option:
        end = _parse_instant(end_option, config.timezone)
    else:
        end = start.add(days=config.defaults.window_days)

    return start, end


def _resolve_participants(repository: CalendarRepository, identifiers: List[str]) -> List[str]:
    if isinstance(repository, JsonCalendarStore):
        return [repository.resolve_participant(identifier) for identifier in identifiers]
    return list(identifiers)


def _local(instant: DateTime, config: AppConfig) -> str:
    return instant.in_timezone(config.timezone).format("ddd, YYYY-MM-DD HH:mm")


def _fail(error: MeetslotError) -> NoReturn:
    if isinstance(error, ValidationError):
        console.print(f"[bold red]Invalid request ({error.kind.value}):[/bold red] {error}")
        raise typer.Exit(EXIT_INVALID_REQUEST)
    if isinstance(error, NoAvailableSlotError):
        console.print(
            f"[yellow]⚠ {error}.[/yellow]\n"
            "Try a longer window or a shorter duration."
        )
        raise typer.Exit(EXIT_NO_SLOT)
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(EXIT_ERROR)


@app.command()
def schedule(
    participants: Annotated[List[str], typer.Argument(help="Participant ids or names.")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Window start (ISO 8601)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Window end (ISO 8601)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Meeting title")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only show the best slot, book nothing.")] = False,
):
    """
    Find the best slot for all participants and book it in every calendar.

    Examples:

        meetslot schedule alice bob --duration 60

        meetslot schedule alice bob --start 2025-03-03T09:00 --end 2025-03-03T17:00 --dry-run
    """
    config = _load_config(config_file)

    try:
        repository = _build_repository(config)
        service = _build_service(config, repository)
        window_start, window_end = _determine_window(config, start, end)

        request = ScheduleRequest(
            participant_ids=_resolve_participants(repository, participants),
            duration_minutes=duration if duration is not None else config.defaults.duration_minutes,
            start=window_start,
            end=window_end,
            title=title or "",
        )

        if dry_run:
            slot = asyncio.run(service.find_slot(request))
            console.print(
                f"[bold green]✓ Best slot:[/bold green] "
                f"{_local(slot.start, config)} – {slot.end.in_timezone(config.timezone).format('HH:mm')} "
                f"(score {slot.score:.2f})"
            )
            return

        response = asyncio.run(service.schedule(request))
    except MeetslotError as e:
        _fail(e)

    console.print(f"[bold green]✓ Meeting scheduled:[/bold green] {response.title}")
    console.print(f"   When: {_local(response.start, config)} – {response.end.in_timezone(config.timezone).format('HH:mm')}")
    console.print(f"   Participants: {', '.join(response.participant_ids)}")
    console.print(f"   Meeting id: [dim]{response.meeting_id}[/dim]")


@app.command()
def suggest(
    participants: Annotated[List[str], typer.Argument(help="Participant ids or names.")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Window start (ISO 8601)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Window end (ISO 8601)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Number of suggestions")] = 5,
):
    """
    List the best free slots without booking anything.
    """
    config = _load_config(config_file)

    try:
        repository = _build_repository(config)
        service = _build_service(config, repository)
        window_start, window_end = _determine_window(config, start, end)

        request = ScheduleRequest(
            participant_ids=_resolve_participants(repository, participants),
            duration_minutes=duration if duration is not None else config.defaults.duration_minutes,
            start=window_start,
            end=window_end,
        )
        slots = asyncio.run(service.suggest_slots(request, limit=limit))
    except MeetslotError as e:
        _fail(e)

    if not slots:
        _fail(NoAvailableSlotError())

    table = Table(title="Suggested slots", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Start", style="bold yellow")
    table.add_column("End")
    table.add_column("Score", justify="right", style="dim")

    for idx, slot in enumerate(slots, 1):
        table.add_row(
            str(idx),
            _local(slot.start, config),
            slot.end.in_timezone(config.timezone).format("HH:mm"),
            f"{slot.score:.2f}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def calendar(
    user: Annotated[str, typer.Argument(help="User id or name.")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Window start (ISO 8601)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Window end (ISO 8601)")] = None,
):
    """
    Show a user's calendar events in a time window.
    """
    config = _load_config(config_file)

    try:
        repository = _build_repository(config)
        service = _build_service(config, repository)
        window_start, window_end = _determine_window(config, start, end)
        user_id = _resolve_participants(repository, [user])[0]
        events = asyncio.run(service.get_user_calendar(user_id, window_start, window_end))
    except MeetslotError as e:
        _fail(e)

    if not events:
        console.print("[yellow]No meetings found for this user in the given window.[/yellow]")
        return

    table = Table(title=f"Calendar of {user}", show_header=True, header_style="bold cyan")
    table.add_column("Start", style="bold yellow")
    table.add_column("End")
    table.add_column("Title")

    for event in events:
        table.add_row(_local(event.start, config), _local(event.end, config), event.title)

    console.print()
    console.print(table)
    console.print()


@app.command()
def users(config_file: ConfigOption = None):
    """
    List all users in the JSON store.
    """
    config = _load_config(config_file)

    try:
        store = _open_json_store(config)
    except MeetslotError as e:
        _fail(e)

    all_users = store.list_users()
    if not all_users:
        console.print("[yellow]No users in the store. Run 'meetslot seed' or 'meetslot add-user'.[/yellow]")
        return

    table = Table(title="Users", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold yellow")
    table.add_column("Id", style="dim")

    for user in all_users:
        table.add_row(user.name, user.id)

    console.print()
    console.print(table)
    console.print()


@app.command()
def add_user(
    name: Annotated[str, typer.Argument(help="Display name of the new user.")],
    config_file: ConfigOption = None,
):
    """
    Add a user to the JSON store.
    """
    config = _load_config(config_file)

    try:
        user = _open_json_store(config).create_user(name)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_ERROR)
    except MeetslotError as e:
        _fail(e)

    console.print(f"[green]✓ Added {user.name}[/green] [dim]({user.id})[/dim]")


@app.command()
def seed(config_file: ConfigOption = None):
    """
    Fill the JSON store with sample users and events.
    """
    config = _load_config(config_file)

    try:
        seeded = _open_json_store(config).seed()
    except MeetslotError as e:
        _fail(e)

    console.print(f"[green]✓ Seeded {len(seeded)} users:[/green] {', '.join(u.name for u in seeded)}")


@app.command()
def clear(
    config_file: ConfigOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
):
    """
    Remove all users and events from the JSON store.
    """
    config = _load_config(config_file)

    if not yes and not typer.confirm(f"Delete all data in {config.store.path}?"):
        raise typer.Abort()

    try:
        _open_json_store(config).clear()
    except MeetslotError as e:
        _fail(e)

    console.print("[green]✓ Store cleared.[/green]")


@app.command()
def login(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Sign in to Microsoft Graph and test the connection.
    """
    config = _load_config(config_file)

    try:
        access_token = _build_authenticator(config).get_access_token(force_refresh=force)
        profile = GraphCalendarRepository(access_token=access_token).test_connection()
    except MeetslotError as e:
        _fail(e)

    console.print(
        f"[bold green]✓ Signed in as[/bold green] {profile.get('displayName', 'N/A')} "
        f"({profile.get('mail') or profile.get('userPrincipalName', 'N/A')})"
    )


@app.command()
def logout(config_file: ConfigOption = None):
    """
    Clear the Microsoft Graph token cache.
    """
    config = _load_config(config_file)
    _build_authenticator(config).clear_cache()
    console.print("[green]✓ Token cache cleared.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"[bold cyan]meetslot[/bold cyan] version [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
