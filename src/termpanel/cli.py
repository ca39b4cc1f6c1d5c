from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import PanelConfig, config_path, load_config, save_config
from .settings import get_settings_path, load_settings, update_setting

app = typer.Typer(no_args_is_help=True, help="Tabbed terminal panel")
config_app = typer.Typer(no_args_is_help=True, help="Static panel configuration")
settings_app = typer.Typer(no_args_is_help=True, help="Remembered user preferences")
app.add_typer(config_app, name="config")
app.add_typer(settings_app, name="settings")

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Working directory for new sessions"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Open the window with its terminal panel."""
    _setup_logging(verbose)
    if cwd is not None and not cwd.is_dir():
        console.print(f"[red]Not a directory: {cwd}[/red]")
        raise typer.Exit(code=2)

    from .gui import run_gui

    run_gui(load_config(), load_settings(), str(cwd.resolve()) if cwd else "")


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    cfg = load_config()
    table = Table(title=str(config_path()))
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in cfg.model_dump().items():
        table.add_row(key, "default" if value is None else str(value))
    console.print(table)


@config_app.command("set")
def config_set(key: str, value: str) -> None:
    """Set one configuration key (validated) and save."""
    cfg = load_config()
    data = cfg.model_dump()
    if key not in data:
        console.print(f"[red]Unknown config key: {key}[/red]")
        raise typer.Exit(code=1)
    data[key] = None if value.lower() in ("none", "null", "") and key == "shell" else value
    try:
        cfg = PanelConfig(**data)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(code=1)
    save_config(cfg)
    console.print(f"[green]{key}[/green] = {getattr(cfg, key)}")


@settings_app.command("show")
def settings_show() -> None:
    """Print remembered preferences."""
    settings = load_settings()
    table = Table(title=str(get_settings_path()))
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@settings_app.command("height")
def settings_height(height: int) -> None:
    """Remember a panel height (clamped to the configured range)."""
    cfg = load_config()
    clamped = cfg.clamp_height(height)
    update_setting("panel_height", clamped)
    if clamped != height:
        console.print(f"[yellow]Clamped to {cfg.min_height}..{cfg.max_height}[/yellow]")
    console.print(f"[green]panel_height[/green] = {clamped}")


@settings_app.command("scheme")
def settings_scheme(scheme: str) -> None:
    """Choose the colour scheme: dark or light."""
    if scheme not in ("dark", "light"):
        console.print("[red]Scheme must be 'dark' or 'light'[/red]")
        raise typer.Exit(code=1)
    update_setting("color_scheme", scheme)
    console.print(f"[green]color_scheme[/green] = {scheme}")


if __name__ == "__main__":
    app()
