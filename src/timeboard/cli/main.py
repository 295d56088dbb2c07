"""Main CLI application."""

import re
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from timeboard import __version__
from timeboard.cli.api_commands import api
from timeboard.core.config import ConfigManager
from timeboard.core.dates import clamp_tz_offset, parse_date_key, parse_instant, week_dates
from timeboard.core.errors import TimeboardError
from timeboard.core.models import NO_DESCRIPTION_LABEL, NO_PROJECT_LABEL
from timeboard.core.storage import StorageManager
from timeboard.core.timeline import format_clock, format_duration
from timeboard.core.tracker import TimeTracker
from timeboard.logging_setup import setup_logging

console = Console()
error_console = Console(stderr=True)

_CLOCK_TIME = re.compile(r"^\d{1,2}:\d{2}$")
_LOCAL_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{1,2}:\d{2}$")


def fail(message: str) -> NoReturn:
    error_console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def get_tracker(ctx: click.Context) -> TimeTracker:
    """Get TimeTracker bound to the configured (or overridden) data directory."""
    config: ConfigManager = ctx.obj["config"]
    data_dir = ctx.obj.get("data_dir")
    storage = StorageManager(Path(data_dir)) if data_dir else None
    return TimeTracker.from_config(config, storage=storage)


def local_tz_offset() -> int:
    """This machine's offset in ``getTimezoneOffset`` minutes (UTC+2 -> -120)."""
    utc_offset = datetime.now().astimezone().utcoffset() or timedelta(0)
    return -int(utc_offset.total_seconds() // 60)


def resolve_offset(value: Optional[int]) -> int:
    return clamp_tz_offset(value) if value is not None else local_tz_offset()


def resolve_member(ctx: click.Context, member: Optional[str]) -> Optional[str]:
    """Explicit ``--member`` or ``general.default_member``."""
    return member or ctx.obj["config"].get("general.default_member")


def parse_when(value: str, field_name: str, tz_offset: int, today: date) -> datetime:
    """Parse ``HH:MM`` (today), ``YYYY-MM-DD HH:MM`` (local) or an ISO instant."""
    raw = value.strip()
    if _CLOCK_TIME.match(raw):
        hour, minute = (int(part) for part in raw.split(":"))
        local = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
        local += timedelta(hours=hour, minutes=minute)
    elif _LOCAL_DATETIME.match(raw):
        local = datetime.strptime(raw, "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)
    else:
        return parse_instant(raw, field_name)
    return local + timedelta(minutes=tz_offset)


member_option = click.option(
    "-m", "--member", help="Team member (defaults to general.default_member)"
)
tz_option = click.option(
    "--tz-offset",
    type=int,
    default=None,
    help="Timezone offset in minutes behind UTC (defaults to this machine)",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", help="Path to config file", type=click.Path())
@click.option("--data-dir", help="Custom data directory", type=click.Path())
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("-v", "--verbose", is_flag=True, help="Log to stderr at general.log_level")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    data_dir: Optional[str],
    no_color: bool,
    verbose: bool,
) -> None:
    """Timeboard - team time tracking from the command line.

    Run timers, record entries after the fact, and review the team's day.
    """
    ctx.ensure_object(dict)
    try:
        config = ConfigManager(Path(config_path) if config_path else None)
    except ValueError as e:
        fail(str(e))

    ctx.obj["config"] = config
    ctx.obj["data_dir"] = data_dir

    if no_color:
        console.no_color = True
    if verbose:
        setup_logging(config)


cli.add_command(api)


@cli.command()
@click.pass_context
def members(ctx: click.Context) -> None:
    """List known team members."""
    tracker = get_tracker(ctx)
    try:
        names = tracker.known_members()
    except TimeboardError as e:
        fail(e.message)

    if not names:
        console.print("[yellow]No members configured[/yellow]")
        console.print("\nAdd some under [cyan]team.members[/cyan] in the config file")
        return
    for name in names:
        console.print(name)


@cli.command()
@click.option("--label", help="Backup directory name (defaults to a timestamp)")
@click.pass_context
def backup(ctx: click.Context, label: Optional[str]) -> None:
    """Copy the data files into the backups directory."""
    tracker = get_tracker(ctx)
    try:
        path = tracker.storage.backup(label)
    except TimeboardError as e:
        fail(e.message)

    console.print(f"[green]✓[/green] Backup written to {path}")


@cli.command()
@click.argument("description", required=False)
@member_option
@click.option("-p", "--project", help="Project name (created if unknown)")
@click.option("--ago", type=click.IntRange(min=0), default=0, help="Started this many minutes ago")
@tz_option
@click.pass_context
def start(
    ctx: click.Context,
    description: Optional[str],
    member: Optional[str],
    project: Optional[str],
    ago: int,
    tz_offset: Optional[int],
) -> None:
    """Start a timer.

    Starting while a timer is already running leaves it untouched.

    Example:
        timeboard start "Code review" -m Rehman -p Ops
    """
    tracker = get_tracker(ctx)

    try:
        result = tracker.start(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            description=description,
            project=project,
            elapsed_seconds=ago * 60,
            tz_offset_minutes=resolve_offset(tz_offset),
        )
    except TimeboardError as e:
        fail(e.message)

    current = result.entry
    title = current.description or NO_DESCRIPTION_LABEL
    if result.started:
        console.print(f"[green]✓[/green] Started tracking: {title}")
    else:
        console.print(f"[yellow]Already running:[/yellow] {title}")
        console.print(f"  Elapsed: {format_duration(current.elapsed_seconds)}")
    if current.project_name:
        console.print(f"  Project: {current.project_name}")
    console.print(f"  Entry ID: {current.id}")


@cli.command()
@member_option
@tz_option
@click.pass_context
def stop(ctx: click.Context, member: Optional[str], tz_offset: Optional[int]) -> None:
    """Stop the running timer.

    Example:
        timeboard stop -m Rehman
    """
    tracker = get_tracker(ctx)

    try:
        entry = tracker.stop(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            tz_offset_minutes=tz_offset,
        )
    except TimeboardError as e:
        fail(e.message)

    console.print(f"[green]✓[/green] Stopped tracking: {entry.description or NO_DESCRIPTION_LABEL}")
    console.print(f"  Duration: {format_duration(entry.duration_seconds or 0)}")
    console.print(f"  Filed under: {entry.source_date}")


@cli.command()
@member_option
@tz_option
@click.pass_context
def status(ctx: click.Context, member: Optional[str], tz_offset: Optional[int]) -> None:
    """Show the running timer of a member."""
    tracker = get_tracker(ctx)

    try:
        canonical = tracker.resolve_member(resolve_member(ctx, member))
        current = tracker.get_running(canonical)
    except TimeboardError as e:
        fail(e.message)

    if current is None:
        console.print(f"[yellow]No timer running for {canonical}[/yellow]")
        console.print('\nStart one with: [cyan]timeboard start "Task"[/cyan]')
        return

    offset = resolve_offset(tz_offset)
    content = f"""[bold]{current.description or NO_DESCRIPTION_LABEL}[/bold]

[dim]Started:[/dim] {format_clock(current.start_at, offset)}
[dim]Elapsed:[/dim] {format_duration(current.elapsed_seconds)}
[dim]Project:[/dim] {current.project_name or NO_PROJECT_LABEL}
[dim]Entry ID:[/dim] {current.id}"""

    console.print(Panel(content, title=f"{canonical} is tracking", border_style="green"))


@cli.command()
@click.argument("minutes", type=click.IntRange(min=0))
@member_option
@click.option("-d", "--description", help="Replace the description")
@click.option("-p", "--project", help="Replace the project")
@tz_option
@click.pass_context
def backdate(
    ctx: click.Context,
    minutes: int,
    member: Optional[str],
    description: Optional[str],
    project: Optional[str],
    tz_offset: Optional[int],
) -> None:
    """Make the running timer look like it started MINUTES ago.

    Example:
        timeboard backdate 45 -m Rehman
    """
    tracker = get_tracker(ctx)

    try:
        current = tracker.backdate(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            minutes * 60,
            description=description,
            project=project,
            tz_offset_minutes=resolve_offset(tz_offset),
        )
    except TimeboardError as e:
        fail(e.message)

    if current is None:
        console.print("[yellow]No timer running; nothing to backdate[/yellow]")
        return
    console.print(f"[green]✓[/green] Timer now at {format_duration(current.elapsed_seconds)}")


@cli.command()
@click.argument("description", required=False)
@member_option
@click.option("--start", "start_at", required=True, help="Start (HH:MM today, YYYY-MM-DD HH:MM, or ISO)")
@click.option("--minutes", type=float, required=True, help="Duration in minutes")
@click.option("-p", "--project", help="Project name (created if unknown)")
@tz_option
@click.pass_context
def add(
    ctx: click.Context,
    description: Optional[str],
    member: Optional[str],
    start_at: str,
    minutes: float,
    project: Optional[str],
    tz_offset: Optional[int],
) -> None:
    """Record a finished entry after the fact.

    Example:
        timeboard add "Standup" --start 09:30 --minutes 15 -p Ops
    """
    tracker = get_tracker(ctx)
    offset = resolve_offset(tz_offset)

    try:
        start_instant = parse_when(start_at, "start", offset, tracker.today(offset))
        entry = tracker.create_manual_entry(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            start_instant,
            duration_minutes=minutes,
            description=description,
            project=project,
            tz_offset_minutes=offset,
        )
    except TimeboardError as e:
        fail(e.message)

    console.print(f"[green]✓[/green] Added entry {entry.id}: {entry.description or NO_DESCRIPTION_LABEL}")
    console.print(
        f"  {format_clock(entry.start_at, offset)} → {format_clock(entry.stop_at, offset)}"
        f" ({format_duration(entry.duration_seconds or 0)})"
    )


@cli.command()
@click.argument("entry_id", type=int)
@member_option
@click.option("--start", "start_at", required=True, help="New start")
@click.option("--stop", "stop_at", required=True, help="New stop")
@click.option("-d", "--description", help="New description ('' clears it)")
@click.option("-p", "--project", help="New project ('' clears it)")
@tz_option
@click.pass_context
def edit(
    ctx: click.Context,
    entry_id: int,
    member: Optional[str],
    start_at: str,
    stop_at: str,
    description: Optional[str],
    project: Optional[str],
    tz_offset: Optional[int],
) -> None:
    """Change the range (and optionally the details) of an entry.

    Example:
        timeboard edit 12 --start 09:00 --stop 10:15
    """
    tracker = get_tracker(ctx)
    offset = resolve_offset(tz_offset)

    try:
        today = tracker.today(offset)
        entry = tracker.update_entry(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            entry_id,
            parse_when(start_at, "start", offset, today),
            parse_when(stop_at, "stop", offset, today),
            description=description,
            project=project,
            tz_offset_minutes=offset,
        )
    except TimeboardError as e:
        fail(e.message)

    console.print(f"[green]✓[/green] Updated entry {entry.id}")
    console.print(f"  Duration: {format_duration(entry.duration_seconds or 0)}")


@cli.command()
@click.argument("entry_id", type=int)
@member_option
@click.pass_context
def delete(ctx: click.Context, entry_id: int, member: Optional[str]) -> None:
    """Delete one of your entries."""
    tracker = get_tracker(ctx)

    try:
        result = tracker.delete_entry(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            entry_id,
        )
    except TimeboardError as e:
        fail(e.message)

    suffix = " (timer was running)" if result.was_running else ""
    console.print(f"[green]✓[/green] Deleted entry {result.entry_id}{suffix}")


def _day_option(tracker: TimeTracker, value: Optional[str], offset: int) -> date:
    if not value or value == "today":
        return tracker.today(offset)
    if value == "yesterday":
        return tracker.today(offset) - timedelta(days=1)
    return parse_date_key(value)


@cli.command()
@member_option
@click.option("--date", "day", help="Day (YYYY-MM-DD, 'today' or 'yesterday')")
@tz_option
@click.pass_context
def day(ctx: click.Context, member: Optional[str], day: Optional[str], tz_offset: Optional[int]) -> None:
    """Show a member's timeline for a day."""
    tracker = get_tracker(ctx)
    offset = resolve_offset(tz_offset)

    try:
        target = _day_option(tracker, day, offset)
        view = tracker.get_day_entries(
            resolve_member(ctx, member),  # type: ignore[arg-type]
            target,
            offset,
        )
    except TimeboardError as e:
        fail(e.message)

    if not view.blocks:
        console.print(f"[yellow]No entries for {view.member} on {target}[/yellow]")
        return

    table = Table(title=f"{view.member} - {target.isoformat()}")
    table.add_column("ID", style="dim")
    table.add_column("Time", style="cyan")
    table.add_column("Duration", style="magenta")
    table.add_column("Description", style="bold")
    table.add_column("Project", style="blue")

    for block in view.blocks:
        icon = "▶" if block.is_running else "■"
        table.add_row(
            str(block.entry_id),
            block.time_range,
            block.duration_label,
            f"{icon} {block.title}",
            block.project,
        )

    console.print(table)
    console.print(f"\n[bold]Total:[/bold] {format_duration(view.total_seconds)}")


@cli.command()
@click.option("--date", "day", help="Day (YYYY-MM-DD, 'today' or 'yesterday')")
@tz_option
@click.pass_context
def rank(ctx: click.Context, day: Optional[str], tz_offset: Optional[int]) -> None:
    """Show the team leaderboard for a day.

    Only finished work entries count, each capped at ranking.entry_cap_seconds.
    """
    tracker = get_tracker(ctx)
    offset = resolve_offset(tz_offset)

    try:
        target = _day_option(tracker, day, offset)
        team_day = tracker.get_team_day(target, offset)
    except TimeboardError as e:
        fail(e.message)

    if not team_day.ranking:
        console.print("[yellow]No members to rank[/yellow]")
        return

    table = Table(title=f"Leaderboard - {target.isoformat()}")
    table.add_column("#", style="dim")
    table.add_column("Member", style="bold")
    table.add_column("Worked", style="magenta")
    table.add_column("Entries", justify="right")
    table.add_column("First start", style="cyan")
    table.add_column("Last end", style="cyan")
    table.add_column("Longest break", style="yellow")

    for position, row in enumerate(team_day.ranking, start=1):
        table.add_row(
            str(position),
            row.member,
            format_duration(row.ranked_seconds),
            str(row.entry_count),
            format_clock(row.first_start, offset),
            format_clock(row.last_end, offset),
            format_duration(row.longest_break_seconds),
        )

    console.print(table)


@cli.command()
@click.option("--date", "day", help="Last day of the week (YYYY-MM-DD, defaults to today)")
@tz_option
@click.pass_context
def week(ctx: click.Context, day: Optional[str], tz_offset: Optional[int]) -> None:
    """Show seven days of worked time for the whole team."""
    tracker = get_tracker(ctx)
    offset = resolve_offset(tz_offset)

    try:
        end_date = _day_option(tracker, day, offset)
        team_week = tracker.get_team_week(end_date)
    except TimeboardError as e:
        fail(e.message)

    table = Table(title=f"Week ending {end_date.isoformat()}")
    table.add_column("Member", style="bold")
    for d in week_dates(end_date):
        table.add_column(d.strftime("%a %d"), justify="right")
    table.add_column("Total", style="magenta", justify="right")

    for row in team_week.rows:
        cells: list[Any] = [row.member]
        cells.extend(format_duration(summary.seconds) if summary.seconds else "-" for summary in row.days)
        cells.append(format_duration(row.total_seconds))
        table.add_row(*cells)

    console.print(table)


if __name__ == "__main__":
    cli(obj={})
