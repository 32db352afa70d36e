"""Focus session commands with a fullscreen countdown.

Each command rebuilds a controller from the session store, acts on it,
and leaves the store as the only state that outlives the process.
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.prompt import Confirm
from rich.table import Table

from joidu_focus.models.focus.clock import SystemClock
from joidu_focus.models.focus.controller import FocusSessionController, FocusState
from joidu_focus.models.focus.history import (
    export_csv,
    export_json,
    filter_entries,
    session_badge,
    weekly_stats,
)
from joidu_focus.models.focus.keyboard import KeyboardHandler
from joidu_focus.models.focus.record import CompletedSessionRecord, FocusOptions
from joidu_focus.models.focus.store import SessionStore
from joidu_focus.models.focus.timer import compute_remaining
from joidu_focus.models.focus.ui import (
    TimerDisplay,
    format_time,
    show_completion_message,
    show_stopped_message,
)
from joidu_focus.services.config_service import get_config_service
from joidu_focus.utils import exit_codes
from joidu_focus.utils.ui.console import get_console

logger = logging.getLogger(__name__)
console = get_console()
app = typer.Typer(help="Focus sessions that survive restarts and breaks")

PERIODS = ("week", "month", "all")


def run_async(coro):
    """Helper to run async coroutines in sync Typer commands."""
    return asyncio.run(coro)


def _get_session_store() -> SessionStore:
    return get_config_service().build_session_store()


def _build_controller(store: SessionStore) -> FocusSessionController:
    """Create a controller for *store*. Call from inside the event loop."""
    focus_cfg = get_config_service().config.focus
    return FocusSessionController(
        store, clock=SystemClock(), break_duration=focus_cfg.break_duration
    )


def _get_display() -> TimerDisplay:
    output_cfg = get_config_service().config.output
    return TimerDisplay(
        get_console(color=output_cfg.color),
        refresh_per_second=output_cfg.refresh_per_second,
    )


def _options_from_config() -> FocusOptions:
    focus_cfg = get_config_service().config.focus
    return FocusOptions(
        auto_break=focus_cfg.auto_break,
        break_duration=focus_cfg.break_duration,
        block_distractions=focus_cfg.block_distractions,
        end_sound=focus_cfg.end_sound,
    )


async def _watch(controller: FocusSessionController, watch: bool) -> FocusState:
    """Run the live display, or detach right away when not watching."""
    if controller.state != FocusState.ACTIVE:
        return controller.state
    if not watch:
        controller.engine.stop()
        return controller.state
    return await _get_display().run(controller, KeyboardHandler())


def _report(
    controller: FocusSessionController, state: FocusState, store: SessionStore
) -> None:
    """Print the outcome of a command for the state it left the session in."""
    if state == FocusState.COMPLETE:
        completed = store.take_completed() or controller.record
        if isinstance(completed, CompletedSessionRecord):
            show_completion_message(completed, console)
            if completed.options.end_sound:
                console.bell()
            if completed.options.auto_break and not completed.is_break:
                console.print(
                    "[dim]Take a breather: 'joidu-focus focus break' starts a "
                    f"{completed.options.break_duration}-minute break.[/dim]"
                )
    elif state == FocusState.CANCELLED:
        completed = store.take_completed() or controller.record
        if isinstance(completed, CompletedSessionRecord):
            show_stopped_message(completed, console)
    elif state == FocusState.BREAK:
        console.print(
            f"\n[yellow]⏸  On a break with {format_time(controller.seconds_remaining)} "
            "left.[/yellow]"
        )
        console.print("Use 'joidu-focus focus resume' to continue.")
    elif state == FocusState.ACTIVE:
        console.print(
            f"\n[cyan]Session keeps running: {format_time(controller.seconds_remaining)} "
            "left.[/cyan]"
        )
        console.print("Use 'joidu-focus focus resume' to watch the timer again.")
    else:
        console.print("[yellow]No active focus session found[/yellow]")


def _run_or_interrupted(coro):
    try:
        return run_async(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Timer closed. The session keeps running.[/yellow]")
        console.print("Use 'joidu-focus focus resume' to continue.")
        raise typer.Exit(exit_codes.SUCCESS) from None
    except OSError as e:
        logger.error(
            "Session state write failed, exiting with %s: %s",
            exit_codes.get_exit_code_name(exit_codes.ERROR_GENERAL),
            e,
        )
        console.print(f"[red]Error: could not save focus session state: {e}[/red]")
        raise typer.Exit(exit_codes.ERROR_GENERAL) from e


@app.command("start")
def start_focus(
    task_title: str = typer.Argument(..., help="What you are focusing on"),
    duration: int = typer.Option(
        None, "--duration", "-d", help="Duration in minutes (default from config)"
    ),
    skip_prep: bool = typer.Option(
        False, "--skip-prep", help="Skip the preparation countdown"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace a session that is already in progress"
    ),
    watch: bool = typer.Option(
        True, "--watch/--no-watch", help="Show the fullscreen timer"
    ),
):
    """Start a focus session."""
    focus_cfg = get_config_service().config.focus
    minutes = duration if duration is not None else focus_cfg.default_duration
    if minutes <= 0 or not task_title.strip():
        console.print("[red]Error: a task title and a positive duration are required[/red]")
        raise typer.Exit(exit_codes.ERROR_INVALID_ARGS)

    store = _get_session_store()
    existing = store.load()
    if existing and not force:
        console.print("[red]Error: Another focus session is already in progress[/red]")
        console.print(f"Task: {existing.task_title}")
        console.print(
            "\nUse 'joidu-focus focus resume' to continue, 'joidu-focus focus stop' "
            "to end it, or --force to replace it."
        )
        raise typer.Exit(exit_codes.ERROR_GENERAL)

    countdown = 0 if skip_prep or not watch else focus_cfg.preparation_countdown

    async def _start():
        controller = _build_controller(store)
        record = controller.create_session(task_title, minutes, options=_options_from_config())

        console.print("\n[bold green]🎯 Focus session ready[/bold green]")
        console.print(f"Task: {record.task_title}")
        console.print(f"Duration: {record.duration_minutes} minutes\n")

        await _get_display().prepare(record, countdown)
        controller.start()
        return controller, await _watch(controller, watch)

    controller, state = _run_or_interrupted(_start())
    _report(controller, state, store)


@app.command("resume")
def resume_focus(
    watch: bool = typer.Option(
        True, "--watch/--no-watch", help="Show the fullscreen timer"
    ),
):
    """Resume a paused session, or reattach to one still running."""
    store = _get_session_store()

    async def _resume():
        controller = _build_controller(store)
        state = controller.restore()
        if state == FocusState.BREAK:
            controller.request_resume()
        return controller, await _watch(controller, watch)

    controller, state = _run_or_interrupted(_resume())
    if state == FocusState.SETUP:
        console.print("[yellow]No active focus session found[/yellow]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND)
    _report(controller, state, store)


@app.command("pause")
def pause_focus():
    """Pause the running session for a break."""
    store = _get_session_store()

    async def _pause():
        controller = _build_controller(store)
        state = controller.restore()
        if state == FocusState.ACTIVE:
            controller.request_pause()
        elif state == FocusState.BREAK:
            console.print("[dim]Session is already paused[/dim]")
        controller.engine.stop()
        return controller, controller.state

    controller, state = _run_or_interrupted(_pause())
    if state == FocusState.SETUP:
        console.print("[yellow]No active focus session found[/yellow]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND)
    _report(controller, state, store)


@app.command("stop")
def stop_focus():
    """Stop the current focus session early."""
    store = _get_session_store()

    async def _stop():
        controller = _build_controller(store)
        state = controller.restore()
        if state in (FocusState.ACTIVE, FocusState.BREAK):
            controller.request_cancel()
        controller.engine.stop()
        return controller, controller.state

    controller, state = _run_or_interrupted(_stop())
    if state == FocusState.SETUP:
        console.print("[yellow]No active focus session found[/yellow]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND)
    _report(controller, state, store)


@app.command("break")
def break_session(
    duration: int = typer.Option(
        None, "--duration", "-d", help="Break length in minutes (default from config)"
    ),
    watch: bool = typer.Option(
        True, "--watch/--no-watch", help="Show the fullscreen timer"
    ),
):
    """Start a short recovery break after a session."""
    store = _get_session_store()
    if store.load() is not None:
        console.print("[red]Error: finish or stop the current session first[/red]")
        raise typer.Exit(exit_codes.ERROR_GENERAL)

    async def _break():
        controller = _build_controller(store)
        if duration is not None:
            controller.break_duration = duration
        controller.start_break_session()
        controller.start()
        return controller, await _watch(controller, watch)

    controller, state = _run_or_interrupted(_break())
    _report(controller, state, store)


@app.command("status")
def focus_status():
    """Show the current focus session without changing it."""
    store = _get_session_store()
    session = store.load()

    if not session:
        console.print("[dim]No active focus session[/dim]")
        raise typer.Exit(exit_codes.SUCCESS)

    remaining = compute_remaining(session, SystemClock().now())

    console.print("\n[bold cyan]Current Focus Session[/bold cyan]\n")
    console.print(f"Task: {session.task_title}")
    console.print(f"Status: {'on a break' if session.is_paused else 'running'}")
    console.print(f"Duration: {session.duration_minutes} minutes")
    console.print(f"Breaks taken: {session.break_count}")

    if remaining > 0:
        console.print(f"Time remaining: {format_time(remaining)}")
    else:
        console.print(
            "[yellow]Time is up - run 'joidu-focus focus resume' to wrap up[/yellow]"
        )

    console.print()


@app.command("summary")
def completed_summary():
    """Show (and clear) the last finished session."""
    store = _get_session_store()
    completed = store.take_completed()
    if completed is None:
        console.print("[dim]No finished session to show[/dim]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND)

    if completed.is_completed:
        show_completion_message(completed, console)
    else:
        show_stopped_message(completed, console)


def _validate_period(period: str) -> str:
    if period not in PERIODS:
        console.print(f"[red]Unknown period: {period}. Use week, month or all[/red]")
        raise typer.Exit(exit_codes.ERROR_INVALID_ARGS)
    return period


@app.command("history")
def focus_history(
    period: str = typer.Option("week", "--period", "-p", help="week, month or all"),
    limit: int = typer.Option(20, "--limit", "-n", help="Sessions to show"),
):
    """List finished focus sessions."""
    _validate_period(period)
    store = _get_session_store()
    entries = filter_entries(store.load_history(), period, SystemClock().now())

    if not entries:
        console.print("[dim]No focus sessions yet[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("", justify="center")
    table.add_column("Task", style="cyan")
    table.add_column("Date")
    table.add_column("Focus", justify="right")
    table.add_column("Breaks", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Score", justify="right")

    for entry in reversed(entries[-limit:]):
        table.add_row(
            session_badge(entry),
            entry.session.task_title,
            entry.completed_datetime.strftime("%Y-%m-%d %H:%M"),
            f"{entry.stats.total_time_spent}m",
            str(entry.stats.breaks_used),
            f"{entry.stats.completion_percentage}%",
            str(entry.stats.productivity_score),
        )

    console.print(table)


@app.command("stats")
def focus_stats():
    """Show focus statistics for the last seven days."""
    store = _get_session_store()
    stats = weekly_stats(store.load_history(), SystemClock().now())

    console.print("\n[bold cyan]This Week[/bold cyan]\n")
    console.print(f"Sessions: {stats['total_sessions']}")
    console.print(f"Focus time: {stats['total_focus_time']} minutes")
    console.print(f"Average session: {stats['average_session_length']} minutes")
    console.print(f"Average completion: {stats['average_completion_rate']}%")
    console.print(f"Breaks taken: {stats['total_breaks_taken']}")
    console.print(f"Most productive day: {stats['most_productive_day']}")
    console.print()


@app.command("export")
def export_history(
    fmt: str = typer.Option("json", "--format", "-f", help="json or csv"),
    period: str = typer.Option("week", "--period", "-p", help="week, month or all"),
    output: Path = typer.Option(
        None, "--output", "-o", help="File to write (default: stdout)"
    ),
):
    """Export focus history as JSON or CSV."""
    _validate_period(period)
    if fmt not in ("json", "csv"):
        console.print(f"[red]Unknown format: {fmt}. Use json or csv[/red]")
        raise typer.Exit(exit_codes.ERROR_INVALID_ARGS)

    store = _get_session_store()
    entries = filter_entries(store.load_history(), period, SystemClock().now())
    content = export_json(entries) if fmt == "json" else export_csv(entries)

    if output is None:
        typer.echo(content)
        return

    output.write_text(content, encoding="utf-8")
    console.print(f"[green]✓ Exported {len(entries)} sessions to {output}[/green]")


@app.command("clear-history")
def clear_history(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Delete all focus session history."""
    if not yes and not Confirm.ask(
        "Clear all focus session history? This cannot be undone.", default=False
    ):
        console.print("[yellow]Cancelled[/yellow]")
        return

    _get_session_store().clear_history()
    console.print("[green]✓ Focus history cleared[/green]")
