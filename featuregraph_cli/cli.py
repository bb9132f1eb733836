"""Typer-based CLI for feature-scoped relevance graphs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config
from .agent_output import to_agent_output, top_reasons
from .cli_config import config_app
from .config_manager import EngineSettings, load_settings
from .engine import FeatureEngine, git_commit_hash, seeds_relative_to, validate_payload
from .errors import ConfigError, FeatureGraphError, PayloadValidationError, RenderError
from .graph import build_dependency_graph
from .graph_export import EXPORTERS
from .hops import ascii_hop_tree
from .models import FeaturePayload, FeatureSubGraph
from .parser import AnalysisReport, analyze_project, get_analyzer

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🧭 FeatureGraph: find the files that make up a feature.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_app, name="config")

OUTPUT_FORMATS = ("table", "json", "agent", "dot", "html")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"FeatureGraph CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log pipeline progress."),
):
    """FeatureGraph CLI: score files by relevance to a feature and extract its subgraph."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _settings(root: Path) -> EngineSettings:
    try:
        return load_settings(root)
    except ConfigError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)


def _analyze(root: Path, analyzer: str, include: Optional[List[str]], exclude: Optional[List[str]]) -> AnalysisReport:
    try:
        report = analyze_project(
            root,
            analyzer=get_analyzer(analyzer),
            include_globs=include or None,
            exclude_globs=exclude or None,
        )
    except FeatureGraphError as exc:
        raise typer.BadParameter(str(exc))
    for warning in report.warnings:
        err_console.print(f"[yellow]⚠[/yellow] skipped {warning}", highlight=False)
    return report


@app.command("analyze")
def analyze(
    project_root: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root to analyze."),
    seeds: List[str] = typer.Option(..., "--seed", "-s", help="Seed file, relative to the project root. Repeatable."),
    keywords: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Feature keyword. Repeatable."),
    feature_id: Optional[str] = typer.Option(None, "--id", help="Feature id (defaults to the first seed's stem)."),
    feature_name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name for the feature."),
    max_hops: Optional[int] = typer.Option(None, "--max-hops", min=0, help="Hop bound from the seeds."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", min=0, help="Minimum relevance score."),
    scale: Optional[str] = typer.Option(None, "--scale", help="Score scale: percent or raw."),
    include: Optional[List[str]] = typer.Option(None, "--include", help="Include glob. Repeatable."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", help="Exclude glob. Repeatable."),
    analyzer: str = typer.Option("regex", "--analyzer", help="Source analyzer: regex, python or tree-sitter."),
    fmt: str = typer.Option("table", "--format", "-f", help="Output: table, json, agent, dot, html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result to this file."),
    with_commit: bool = typer.Option(True, "--commit/--no-commit", help="Stamp the git commit hash."),
):
    """Score every file against a feature and print its relevant subgraph."""
    fmt = fmt.lower()
    if fmt not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(OUTPUT_FORMATS)}")

    settings = _settings(project_root)
    score_scale = scale or settings.score_scale
    if score_scale not in config.SCORE_SCALES:
        raise typer.BadParameter(f"Scale must be one of: {', '.join(config.SCORE_SCALES)}")

    try:
        rel_seeds = seeds_relative_to(project_root, seeds)
        payload = validate_payload(FeaturePayload(
            feature_id=feature_id or (Path(rel_seeds[0]).stem if rel_seeds else ""),
            feature_name=feature_name,
            seeds=rel_seeds,
            keywords=list(keywords or []),
            include_globs=list(include) if include else None,
            exclude_globs=list(exclude) if exclude else None,
            max_hops=settings.max_hops if max_hops is None else max_hops,
            relevance_threshold=settings.relevance_threshold if threshold is None else threshold,
            return_graph=True,
        ))
    except PayloadValidationError as exc:
        raise typer.BadParameter(str(exc))

    report = _analyze(project_root, analyzer, include, exclude)
    engine = FeatureEngine(settings.weights, score_scale=score_scale)
    commit = git_commit_hash(project_root) if with_commit else None

    renderer = None
    if output is not None or fmt in ("dot", "html"):
        target = output or Path.cwd() / f"{payload.feature_id}_feature.{_file_ext(fmt)}"
        renderer = _FileRenderer(fmt, target)

    try:
        subgraph = engine.render_feature(payload, report.files, renderer=renderer, commit_hash=commit)
    except RenderError as exc:
        err_console.print(f"[red]✗[/red] Analysis finished but rendering failed: {exc}")
        raise typer.Exit(2)

    if renderer is not None:
        console.print(f"[green]✓[/green] Wrote {fmt} output to {renderer.target}", highlight=False)
        return

    if fmt == "json":
        typer.echo(json.dumps(subgraph.to_dict(), indent=2))
    elif fmt == "agent":
        typer.echo(json.dumps(to_agent_output(subgraph, payload.max_hops, include_graph_json=False), indent=2))
    else:
        _print_table(subgraph, payload, len(report.files))


@app.command("graph")
def graph(
    project_root: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root to analyze."),
    seeds: List[str] = typer.Option(..., "--seed", "-s", help="Seed file, relative to the project root. Repeatable."),
    depth: int = typer.Option(2, "--depth", "-d", min=0, max=10, help="Traversal depth."),
    analyzer: str = typer.Option("regex", "--analyzer", help="Source analyzer: regex, python or tree-sitter."),
):
    """Show the ASCII hop tree around the seed files."""
    try:
        rel_seeds = seeds_relative_to(project_root, seeds)
    except PayloadValidationError as exc:
        raise typer.BadParameter(str(exc))
    report = _analyze(project_root, analyzer, None, None)
    dependency_graph = build_dependency_graph(report.files)
    typer.echo(ascii_hop_tree(dependency_graph, rel_seeds, depth))


class _FileRenderer:
    def __init__(self, fmt: str, target: Path):
        self.fmt = fmt
        self.target = target

    def __call__(self, subgraph: FeatureSubGraph) -> None:
        if self.fmt == "agent":
            self.target.write_text(json.dumps(to_agent_output(subgraph), indent=2), encoding="utf-8")
            return
        exporter = EXPORTERS["json" if self.fmt == "table" else self.fmt]
        exporter(subgraph, self.target)


def _file_ext(fmt: str) -> str:
    return fmt if fmt in ("dot", "html") else "json"


def _print_table(subgraph: FeatureSubGraph, payload: FeaturePayload, total_files: int) -> None:
    console.print(
        Panel.fit(
            f"[bold]{subgraph.feature_name}[/bold]\n"
            f"{len(subgraph.files)}/{total_files} files ≥ {payload.relevance_threshold:g} · "
            f"{subgraph.num_edges} edges · {len(subgraph.bridges)} bridges",
            title="[bold cyan]Feature[/bold cyan]",
            border_style="cyan",
        )
    )
    if not subgraph.files:
        console.print("[yellow]No files cleared the relevance threshold.[/yellow]")
        return

    seeds = set(subgraph.seeds)
    table = Table(show_header=True, show_lines=False)
    table.add_column("File", style="cyan", overflow="fold")
    table.add_column("Score", justify="right")
    table.add_column("Hops", justify="right")
    table.add_column("Kind")
    table.add_column("Bridge", justify="center")
    table.add_column("Top reason", overflow="fold")

    for item in subgraph.files:
        name = f"[bold]{item.path}[/bold] ★" if item.path in seeds else item.path
        reasons = top_reasons(item, limit=1)
        table.add_row(
            name,
            f"{item.score:g}",
            "-" if item.hops is None else str(item.hops),
            item.kind,
            "●" if item.is_bridge else "",
            reasons[0] if reasons else "",
        )
    console.print(table)


if __name__ == "__main__":
    app()
