"""Main entry point for Joidu Focus."""

import typer

from joidu_focus import __version__
from joidu_focus.commands import config, focus
from joidu_focus.utils.logger import get_logger
from joidu_focus.utils.ui.console import get_console

app = typer.Typer(
    name="joidu-focus",
    help="Gentle, resumable focus sessions for the terminal",
    no_args_is_help=True,
)

console = get_console()


@app.callback()
def _setup_logging() -> None:
    """Gentle, resumable focus sessions for the terminal."""
    get_logger()


app.add_typer(focus.app, name="focus", help="Focus session commands")
app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]Joidu Focus[/bold] version [cyan]{__version__}[/cyan]")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
