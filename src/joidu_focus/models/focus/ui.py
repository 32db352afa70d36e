"""Full-screen timer UI for focus sessions.

The display is a pure renderer of ``(state, seconds remaining)``; every
user intent is forwarded to the controller.
"""

import asyncio

from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .controller import FocusSessionController, FocusState
from .history import build_stats
from .record import CompletedSessionRecord, SessionRecord

POLL_INTERVAL = 0.25

PREPARATION_TIPS = [
    "Close unnecessary browser tabs and apps",
    "Put your phone on silent or in another room",
    "Get comfortable - adjust your chair and lighting",
    "Have water and any materials you need nearby",
    "Take 3 deep breaths to center yourself",
]


def format_time(seconds: int) -> str:
    """Render seconds as MM:SS, never negative."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def win_message(minutes: int) -> str:
    """Encouragement shown after a finished session."""
    if minutes >= 45:
        return "Incredible focus session! You're mastering deep work."
    if minutes >= 25:
        return (
            f"You stayed focused for {minutes} minutes! That's building your "
            "attention muscle and creating positive momentum."
        )
    return "Great start! You're building focus stamina."


class TimerDisplay:
    """Manages the fullscreen timer display."""

    def __init__(self, console: Console | None = None, refresh_per_second: int = 4):
        self.console = console or Console()
        self.refresh_per_second = refresh_per_second

    def create_layout(
        self, record: SessionRecord | None, state: FocusState, remaining: int
    ) -> Layout:
        """Create the timer layout with all components."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=3),
        )

        if state == FocusState.BREAK:
            title, color = "⏸  ON A BREAK", "yellow"
        elif state == FocusState.COMPLETE:
            title, color = "✓  COMPLETE", "green"
        elif state == FocusState.CANCELLED:
            title, color = "■  STOPPED", "red"
        elif record is not None and record.is_break:
            title, color = "☕  Break Time", "magenta"
        else:
            title, color = "🎯  Focus Mode", "cyan"

        header_text = Text(title, style=f"bold {color}", justify="center")
        layout["header"].update(Align.center(header_text, vertical="middle"))

        body = self._create_body_content(record, state, remaining)
        layout["body"].update(Align.center(body, vertical="middle"))

        layout["footer"].update(
            Align.center(self._create_footer_text(state), vertical="middle")
        )
        return layout

    def _create_body_content(
        self, record: SessionRecord | None, state: FocusState, remaining: int
    ) -> Group:
        components = []

        if record is not None:
            components.append(
                Text(record.task_title[:50], style="bold white", justify="center")
            )
            components.append(Text(""))

        if state == FocusState.BREAK:
            timer_color = "yellow"
        elif remaining < 60:
            timer_color = "red"
        elif remaining < 300:
            timer_color = "yellow"
        else:
            timer_color = "cyan"

        components.append(
            Text(format_time(remaining), style=f"bold {timer_color}", justify="center")
        )
        components.append(Text(""))

        total_seconds = record.duration_seconds if record is not None else 0
        elapsed = total_seconds - remaining
        progress_pct = (
            min(100, int((elapsed / total_seconds) * 100)) if total_seconds > 0 else 0
        )

        bar_width = 40
        filled = int(bar_width * progress_pct / 100)
        progress_bar = "▓" * filled + "░" * (bar_width - filled)
        components.append(
            Text(f"{progress_bar}  {progress_pct}%", style="dim", justify="center")
        )

        if record is not None and record.break_count:
            components.append(Text(""))
            components.append(
                Text(
                    f"Breaks taken: {record.break_count}",
                    style="yellow dim",
                    justify="center",
                )
            )

        if record is not None and record.options.block_distractions:
            components.append(
                Text("🔕 Notifications muted", style="dim", justify="center")
            )

        return Group(*components)

    def _create_footer_text(self, state: FocusState) -> Text:
        """Create footer with keyboard hints."""
        if state == FocusState.ACTIVE:
            hints = "Press 'p' to pause  •  's' to stop  •  'q' to leave it running"
        elif state == FocusState.BREAK:
            hints = "Press 'r' to resume  •  's' to stop  •  'q' to resume later"
        else:
            hints = ""
        return Text(hints, style="dim", justify="center")

    def render_preparing(self, record: SessionRecord, seconds_left: int) -> Panel:
        """Panel shown during the preparation countdown."""
        lines = [f"[bold]{record.task_title}[/bold] · {record.duration_minutes} min", ""]
        lines += [f"  • {tip}" for tip in PREPARATION_TIPS]
        lines += ["", f"[bold cyan]Starting in {seconds_left}…[/bold cyan]"]
        return Panel("\n".join(lines), title="Get ready", border_style="cyan", padding=(1, 2))

    async def prepare(self, record: SessionRecord, countdown: int) -> None:
        """Show the preparation checklist while counting down."""
        if countdown <= 0:
            return
        with Live(
            self.render_preparing(record, countdown),
            console=self.console,
            refresh_per_second=self.refresh_per_second,
            transient=True,
        ) as live:
            for seconds_left in range(countdown, 0, -1):
                live.update(self.render_preparing(record, seconds_left))
                await asyncio.sleep(1)

    async def run(self, controller: FocusSessionController, keyboard=None) -> FocusState:
        """
        Drive the live timer while the session is active or, with a
        keyboard attached, on a break waiting for 'r'.

        Returns the controller state when the display exits: COMPLETE,
        CANCELLED, or ACTIVE/BREAK when the user detached.
        """
        try:
            with Live(
                self._layout_for(controller),
                console=self.console,
                refresh_per_second=self.refresh_per_second,
                screen=True,
            ) as live:
                while self._showing(controller, keyboard):
                    intent = keyboard.get_intent() if keyboard else None

                    if intent == "pause":
                        controller.request_pause()
                    elif intent == "resume":
                        controller.request_resume()
                    elif intent == "stop":
                        controller.request_cancel()
                    elif intent == "detach":
                        controller.engine.stop()
                        break

                    live.update(self._layout_for(controller))
                    await asyncio.sleep(POLL_INTERVAL)
        except (KeyboardInterrupt, asyncio.CancelledError):
            controller.engine.stop()
        finally:
            if keyboard:
                keyboard.stop()

        return controller.state

    @staticmethod
    def _showing(controller: FocusSessionController, keyboard) -> bool:
        if controller.state == FocusState.ACTIVE:
            return True
        # Only a keyboard can bring a session back from its break.
        return keyboard is not None and controller.state == FocusState.BREAK

    def _layout_for(self, controller: FocusSessionController) -> Layout:
        return self.create_layout(
            controller.record, controller.state, controller.seconds_remaining
        )


def show_completion_message(
    session: CompletedSessionRecord, console: Console | None = None
):
    """Show a completion message after the timer ends."""
    console = console or Console()
    stats = build_stats(session)

    panel = Panel(
        f"""[bold green]🎉 Focus Session Complete![/bold green]

Task: {session.task_title}
Duration: {session.duration_minutes} minutes
Focused: {stats.total_time_spent} minutes · Breaks: {stats.breaks_used}
Focus score: {stats.productivity_score}

{win_message(stats.total_time_spent)}""",
        border_style="green",
        padding=(1, 2),
    )

    console.print(panel)


def show_stopped_message(
    session: CompletedSessionRecord, console: Console | None = None
):
    """Show a message when a session is stopped early."""
    console = console or Console()

    remaining = session.time_remaining_seconds or 0
    panel = Panel(
        f"""[yellow]Session Stopped[/yellow]

Task: {session.task_title}
Time focused: {session.focused_seconds // 60} minutes
Remaining: {format_time(remaining)}

That's okay - every minute of focus counts.""",
        border_style="yellow",
        padding=(1, 2),
    )

    console.print(panel)
