"""
CLI interface for TokenWise.

Provides command-line access to log analysis and optimization reports.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from tokenwise import __version__
from tokenwise.cli.report import (
    print_recommendations,
    print_report,
    recommendations_to_json,
    to_json,
)
from tokenwise.config.loader import AppConfig, load_config
from tokenwise.core.analyzer import Analysis, analyze
from tokenwise.core.models import UsageRecord
from tokenwise.core.optimizer import Recommendation, optimize
from tokenwise.core.parser import ParseError, parse_log
from tokenwise.demo.sample_data import generate_records

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable debug logging"
    )
):
    """TokenWise - AI API cost intelligence."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    if ctx.invoked_subcommand is None:
        console.print("TokenWise - Use --help to see available commands")


@app.command()
def version():
    """Show the TokenWise version."""
    console.print(f"tokenwise v{__version__}")


@app.command(name="analyze")
def analyze_command(
    logfile: Path = typer.Argument(..., help="API usage log (JSON array, JSON lines or single object)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    budget: Optional[float] = typer.Option(
        None,
        "--budget",
        "-b",
        help="Monthly budget in USD for alerts"
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file with budget and pricing overrides"
    )
):
    """Analyze an API usage log and print a cost report."""
    config = _load_app_config(config_path)
    records = _load_log_file(logfile)
    analysis, recommendations = _run_pipeline(records, config, budget)

    if as_json:
        typer.echo(to_json(analysis, recommendations))
    else:
        print_report(console, analysis, recommendations)
    sys.exit(EXIT_CODE_OK)


@app.command(name="optimize")
def optimize_command(
    logfile: Path = typer.Argument(..., help="API usage log (JSON array, JSON lines or single object)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    budget: Optional[float] = typer.Option(
        None,
        "--budget",
        "-b",
        help="Monthly budget in USD for alerts"
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file with budget and pricing overrides"
    )
):
    """Generate optimization recommendations for an API usage log."""
    config = _load_app_config(config_path)
    records = _load_log_file(logfile)
    analysis, recommendations = _run_pipeline(records, config, budget)

    if as_json:
        typer.echo(recommendations_to_json(recommendations))
    else:
        print_recommendations(console, analysis, recommendations)
    sys.exit(EXIT_CODE_OK)


@app.command()
def demo(
    count: int = typer.Option(110, "--count", "-n", help="Number of sample requests to generate"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible data"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    budget: Optional[float] = typer.Option(
        None,
        "--budget",
        "-b",
        help="Monthly budget in USD for alerts"
    )
):
    """Run the analysis on generated sample data."""
    records = parse_log(generate_records(count=count, seed=seed))
    analysis, recommendations = _run_pipeline(records, AppConfig(), budget)

    if as_json:
        typer.echo(to_json(analysis, recommendations))
    else:
        console.print("[dim]  Running demo with sample data...[/]")
        print_report(console, analysis, recommendations)
    sys.exit(EXIT_CODE_OK)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(EXIT_CODE_FAIL)


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is None:
        return AppConfig()
    try:
        return load_config(str(config_path))
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        _fail(str(e))


def _load_log_file(logfile: Path) -> List[UsageRecord]:
    path = logfile.resolve()
    if not path.is_file():
        _fail(f"File not found: {path}")
    try:
        return parse_log(path.read_bytes())
    except ParseError as e:
        _fail(f"Failed to parse {path}: {e}")


def _run_pipeline(
    records: List[UsageRecord],
    config: AppConfig,
    budget: Optional[float]
) -> Tuple[Analysis, List[Recommendation]]:
    try:
        optimizer_config = config.optimizer_config(budget)
    except ValueError as e:
        _fail(str(e))
    analysis = analyze(records, pricing=config.pricing)
    return analysis, optimize(analysis, optimizer_config, pricing=config.pricing)


if __name__ == "__main__":
    app()
