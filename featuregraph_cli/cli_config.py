"""`fg config` commands: inspect and override scoring weights and defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import config, config_manager
from .errors import ConfigError
from .models import REASON_TYPES, ScoringWeights

console = Console()

config_app = typer.Typer(
    help="⚙️  Configuration: scoring weights and feature defaults.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@config_app.command("show")
def show_config(
    project_root: Optional[Path] = typer.Argument(
        None, exists=True, file_okay=False, help="Include this project's .featuregraph.toml."
    ),
):
    """Show the effective scoring weights and defaults."""
    try:
        settings = config_manager.load_settings(project_root)
    except ConfigError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)

    builtin = ScoringWeights().to_dict()
    table = Table(title="Scoring weights", show_header=True)
    table.add_column("Reason", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Default", justify="right", style="dim")
    for reason, weight in settings.weights.to_dict().items():
        marker = "" if weight == builtin[reason] else " *"
        table.add_row(reason, f"{weight:g}{marker}", f"{builtin[reason]:g}")
    console.print(table)

    console.print(f"  max_hops             {settings.max_hops}")
    console.print(f"  relevance_threshold  {settings.relevance_threshold:g}")
    console.print(f"  score_scale          {settings.score_scale}")
    console.print(f"  config file          [dim]{config.CONFIG_FILE}[/dim]", highlight=False)


@config_app.command("set-weight")
def set_weight(
    reason: str = typer.Argument(..., help=f"Reason type: {', '.join(REASON_TYPES)}."),
    value: float = typer.Argument(..., min=0, help="New non-negative weight."),
):
    """Override one scoring weight in the user config."""
    try:
        config_manager.save_weight(reason, value)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc))
    console.print(f"[green]✓[/green] {reason} weight set to {value:g}")


@config_app.command("set-default")
def set_default(
    key: str = typer.Argument(..., help="max_hops, relevance_threshold or score_scale."),
    value: str = typer.Argument(..., help="New value."),
):
    """Override a feature default in the user config."""
    try:
        parsed = _parse_default(key, value)
        config_manager.save_default(key, parsed)
    except (ConfigError, ValueError) as exc:
        raise typer.BadParameter(str(exc))
    console.print(f"[green]✓[/green] {key} set to {parsed}")


@config_app.command("reset")
def reset():
    """Remove weight and default overrides from the user config."""
    if config_manager.reset_config():
        console.print("[green]✓[/green] Configuration reset to built-in defaults.")
    else:
        console.print("No user configuration to reset.")


def _parse_default(key: str, value: str):
    if key == "max_hops":
        hops = int(value)
        if hops < 0:
            raise ValueError("max_hops must be >= 0")
        return hops
    if key == "relevance_threshold":
        threshold = float(value)
        if threshold < 0:
            raise ValueError("relevance_threshold must be >= 0")
        return threshold
    if key == "score_scale":
        if value not in config.SCORE_SCALES:
            raise ValueError(f"score_scale must be one of: {', '.join(config.SCORE_SCALES)}")
        return value
    raise ConfigError(f"Unknown default '{key}'. Choose one of: {', '.join(config_manager.DEFAULT_KEYS)}")
