"""Configuration management commands."""

import json

import typer
from pydantic import ValidationError

from joidu_focus.services.config_service import get_config_service
from joidu_focus.utils import exit_codes
from joidu_focus.utils.ui.console import get_console

app = typer.Typer(help="Configuration management commands")
console = get_console()


def _parse_value(value: str):
    """Interpret a command-line value as JSON when possible (numbers, booleans, null)."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


@app.command("show")
def show_config() -> None:
    """Show the current configuration."""
    config = get_config_service().config
    console.print_json(config.model_dump_json())


@app.command("get")
def get_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., focus.default_duration)"),
) -> None:
    """Get a configuration value."""
    try:
        value = get_config_service().get(key)
    except KeyError:
        console.print(f"[red]Configuration key '{key}' not found[/red]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND) from None
    if hasattr(value, "model_dump_json"):
        console.print_json(value.model_dump_json())
    else:
        console.print(value)


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., focus.default_duration)"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value."""
    try:
        get_config_service().set(key, _parse_value(value))
    except KeyError:
        console.print(f"[red]Configuration key '{key}' not found[/red]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND) from None
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(exit_codes.ERROR_INVALID_ARGS) from None
    console.print(f"[green]✓ {key} = {value}[/green]")


@app.command("reset")
def reset_config(
    key: str = typer.Argument(None, help="Key to reset (omit to reset everything)"),
) -> None:
    """Reset configuration to defaults."""
    try:
        get_config_service().reset(key)
    except (KeyError, AttributeError):
        console.print(f"[red]Configuration key '{key}' not found[/red]")
        raise typer.Exit(exit_codes.ERROR_NOT_FOUND) from None
    console.print(f"[green]✓ Reset {key or 'configuration'} to defaults[/green]")
