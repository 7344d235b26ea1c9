"""Insight CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from insight_qa.config.models import InsightConfig
    from insight_qa.history.models import HistoryBackend

T = TypeVar("T")

app = typer.Typer(
    name="insight",
    help="Insight - test-result intelligence",
    no_args_is_help=True,
)
console = Console()

_HEALTH_STYLES = {"Excellent": "green", "Good": "green", "Fair": "yellow", "Poor": "red"}
_SEVERITY_STYLES = {"critical": "red bold", "high": "red", "medium": "yellow", "low": "dim"}


@app.callback()
def _main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(path: Path | None) -> InsightConfig:
    from insight_qa.config.loader import load_config_or_default

    try:
        return load_config_or_default(path=path)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


async def _closing(work: Awaitable[T], history: HistoryBackend | None) -> T:
    try:
        return await work
    finally:
        if history is not None:
            await history.close()


@app.command()
def analyze(
    results: Path = typer.Argument(help="JSON file with the decoded suite results"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to .insight.yaml"),
    record: bool = typer.Option(True, "--record/--no-record", help="Record this run to history"),
) -> None:
    """Analyse a run: failure groups, flaky tests, trends and a health summary."""
    from insight_qa.engine import InsightEngine
    from insight_qa.history import create_history
    from insight_qa.results.models import SuiteOutcome

    config = _load(config_path)
    config.history.record_runs = record and config.history.record_runs

    try:
        data = json.loads(results.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"[red]Results file not found: {results}[/red]")
        raise typer.Exit(1)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON in {results}: {exc}[/red]")
        raise typer.Exit(1)

    suite = SuiteOutcome.from_dict(data)
    history = create_history(config.history)
    engine = InsightEngine(config, history=history)
    asyncio.run(_closing(engine.run(suite), history))

    summary = suite.executive_summary
    if summary is None:
        console.print("[red]Analysis produced no executive summary.[/red]")
        raise typer.Exit(1)
    style = _HEALTH_STYLES.get(str(summary.health_status), "white")
    console.print(f"\n[bold]Health:[/bold] [{style}]{summary.health_status}[/{style}]"
                  f" ({suite.success_rate:.1f}% success, trend: {summary.trend_indicator})")
    for insight in summary.key_insights:
        console.print(f"  • {insight}")
    if summary.narrative:
        console.print(f"\n{summary.narrative}")

    if suite.failure_groups:
        table = Table(title="Failure Groups")
        table.add_column("Kind", style="bold")
        table.add_column("Severity")
        table.add_column("Count", justify="right")
        table.add_column("Root cause")
        for group in suite.failure_groups:
            sev_style = _SEVERITY_STYLES.get(str(group.severity), "white")
            table.add_row(
                str(group.kind),
                f"[{sev_style}]{group.severity}[/{sev_style}]",
                str(group.count),
                group.root_cause,
            )
        console.print(table)

    if suite.flaky_tests:
        table = Table(title="Flaky Tests")
        table.add_column("Spec")
        table.add_column("Scenario", style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Failure rate", justify="right")
        table.add_column("Runs", justify="right")
        for flaky in suite.flaky_tests:
            table.add_row(
                flaky.spec_name,
                flaky.scenario_name,
                f"{flaky.flaky_score:.2f}",
                f"{flaky.failure_rate:.0f}%",
                str(flaky.occurrences),
            )
        console.print(table)

    console.print(f"\n[bold]Recommendation:[/bold] {summary.recommendation}")


@app.command()
def trends(
    days: int = typer.Option(30, "--days", "-d", help="Trailing window in days"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to .insight.yaml"),
) -> None:
    """Show the success-rate trend from recorded history."""
    from insight_qa.analysis.trends import TrendEngine
    from insight_qa.history import create_history

    config = _load(config_path)
    history = create_history(config.history)
    if history is None:
        console.print("[yellow]History is disabled in configuration.[/yellow]")
        raise typer.Exit(1)

    data = asyncio.run(_closing(TrendEngine(history, config.analysis).trends(window_days=days), history))
    if not data.historical_runs:
        console.print(f"No recorded runs in the last {days} day(s).")
        return

    table = Table(title=f"Runs in the last {days} day(s)")
    table.add_column("Timestamp")
    table.add_column("Success", justify="right")
    table.add_column("Passed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Duration", justify="right")
    for run in data.historical_runs:
        table.add_row(
            run.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{run.success_rate:.1f}%",
            str(run.passed),
            str(run.failed),
            f"{run.duration_ms / 1000:.1f}s",
        )
    console.print(table)

    if data.prediction is not None:
        console.print(
            f"Quality trend: [bold]{data.prediction.quality_trend}[/bold]"
            f" (next run expected around {data.prediction.next_run.success_rate:.1f}%)"
        )


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .insight.yaml"),
) -> None:
    """Validate configuration file."""
    from insight_qa.config.loader import ConfigSyntaxError, load_config
    from insight_qa.config.models import CLOUD_PROVIDERS

    try:
        config = load_config(path=path)
        console.print("[green]✓[/green] YAML parses correctly")
        console.print("[green]✓[/green] Pydantic validation passes")
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    except ConfigSyntaxError as exc:
        console.print(f"[red]✗ YAML parsing failed: {exc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print("[green]✓[/green] YAML parses correctly")
        console.print(f"[red]✗ Pydantic validation failed: {exc}[/red]")
        raise typer.Exit(1)

    warnings: list[str] = []
    llm = config.llm
    if llm.enabled and llm.provider == "none":
        warnings.append("LLM is enabled but provider is 'none'; fallback text will be used")
    if llm.active and llm.provider in CLOUD_PROVIDERS and not llm.api_key:
        warnings.append(f"LLM provider '{llm.provider}' has no API key; fallback text will be used")
    if not 0.0 <= config.analysis.flaky_threshold <= 1.0:
        warnings.append(f"Flaky threshold {config.analysis.flaky_threshold} is outside [0, 1]")

    for w in warnings:
        console.print(f"[yellow]! {w}[/yellow]")
    console.print("\n[green bold]Configuration is valid.[/green bold]")


@config_app.command("show")
def config_show(
    path: Path | None = typer.Option(None, "--path", "-p", help="Path to .insight.yaml"),
) -> None:
    """Print resolved configuration."""
    config = _load(path)

    console.print(f"[bold]Project:[/bold] {config.project.name} ({config.project.environment})\n")

    console.print("[bold]LLM:[/bold]")
    if config.llm.active:
        console.print(f"  Provider: {config.llm.provider}")
        console.print(f"  URL: {config.llm.api_url}")
        console.print(f"  Model: {config.llm.model}")
        console.print(f"  API key: {'set' if config.llm.api_key else 'not set'}")
        console.print(f"  Timeout: {config.llm.timeout}s\n")
    else:
        console.print("  Disabled\n")

    console.print("[bold]History:[/bold]")
    console.print(f"  Backend: {config.history.backend}")
    if config.history.backend == "sqlite":
        console.print(f"  Database: {config.history.db_path}")
    console.print(f"  Record runs: {config.history.record_runs}\n")

    a = config.analysis
    console.print("[bold]Analysis:[/bold]")
    console.print(f"  Flaky window: {a.flaky_window_days}d, min runs {a.flaky_min_runs}, threshold {a.flaky_threshold}")
    console.print(f"  Trend window: {a.trend_window_days}d")


def main() -> None:
    app()
