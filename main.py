#!/usr/bin/env python3
"""
Trader ELO - Explainable Trader Scoring
Main CLI entry point
"""

import json
import sys
from pathlib import Path

# Add project root to Python path
ROOT_DIR = Path(__file__).parent
sys.path.insert(0, str(ROOT_DIR))

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from trader_elo import __version__
from trader_elo.api import parse_request
from trader_elo.config import load_config
from trader_elo.scorer import ELOCalculator, rank_reports, summarize_reports
from trader_elo.utils import get_logger, setup_logging_from_config

# Initialize console
console = Console()

CATEGORY_STYLES = {
    'Elite': 'bold green',
    'Professional': 'green',
    'Consistent': 'cyan',
    'Unstable': 'yellow',
    'Speculative': 'red',
    'Insufficient_Data': 'dim',
}


@click.group()
@click.version_option(version=__version__)
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              default='config/config.yaml', show_default=True, help='Config file')
@click.pass_context
def cli(ctx, config_path):
    """
    Trader ELO - explainable 0-100 trader scoring

    \b
    Quick start:
        trader-elo score trader.json            # Score one trader
        trader-elo leaderboard data/*.json      # Rank several traders
        trader-elo stats data/*.json            # Aggregate statistics
    """
    if ctx.obj is None:
        ctx.obj = {}

    # Load config
    try:
        ctx.obj['config'] = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Failed to load configuration:[/red] {e}")
        sys.exit(1)

    # Setup logging
    setup_logging_from_config(ctx.obj['config'])

    ctx.obj['logger'] = get_logger('trader_elo.cli')
    ctx.obj['calculator'] = ELOCalculator(ctx.obj['config'])


@cli.command()
@click.argument('payload', type=click.Path(exists=True, dir_okay=False))
@click.option('--json', 'as_json', is_flag=True, help='Print the raw response as JSON')
@click.pass_context
def score(ctx, payload, as_json):
    """Calculate the ELO score of one trader (JSON request file)"""
    calculator = ctx.obj['calculator']

    response = calculator.calculate_elo(*_load_request(payload))

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
        sys.exit(0 if response.success else 1)

    if not response.success:
        console.print(f"[red]{response.error}[/red]")
        sys.exit(1)

    report = response.elo
    style = CATEGORY_STYLES.get(report.category.value, 'white')

    console.print(f"\n[bold cyan]Trader {report.trader_id}[/bold cyan]")
    console.print(
        f"ELO: [{style}]{report.elo_score:.1f}[/{style}] ({report.category.value})  "
        f"raw {report.raw_score:.1f}\n"
    )

    reliability = report.reliability
    console.print(
        f"Trades: {reliability.total_trades} | "
        f"Reliability: {reliability.reliability_multiplier:.2f} | "
        f"Data coverage: {reliability.data_coverage:.0%} | "
        f"Confidence: {reliability.confidence_coefficient:.2f}\n"
    )

    table = Table(title="Blocks")
    table.add_column("Block", style="cyan")
    table.add_column("Score")
    table.add_column("Confidence")
    table.add_column("Coverage")
    table.add_column("Weight")

    for block in report.blocks:
        confidence = block.confidence_tier.value
        if block.is_excluded:
            confidence = f"[red]{confidence}[/red]"
        table.add_row(
            block.name,
            f"{block.score:.1f}",
            confidence,
            f"{block.available_metric_count}/{block.total_metric_count}",
            f"{block.original_weight:.2f} -> {block.adjusted_weight:.2f}",
        )

    console.print(table)

    if report.penalties:
        console.print("\n[bold]Penalties:[/bold]")
        for penalty in report.penalties:
            console.print(f"  [red]{penalty.value:+.0f}[/red] {penalty.name}: {penalty.reason}")

    if report.missing_metrics:
        console.print(f"\n[dim]Missing metrics: {', '.join(report.missing_metrics)}[/dim]")


@cli.command()
@click.argument('payloads', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--limit', type=click.IntRange(min=1), default=50, show_default=True,
              help='Max entries shown')
@click.pass_context
def leaderboard(ctx, payloads, limit):
    """Rank traders by ELO score"""
    reports = _score_all(ctx, payloads)

    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Trader", style="cyan")
    table.add_column("ELO", justify="right")
    table.add_column("Category")
    table.add_column("Trades", justify="right")

    for rank, report in enumerate(rank_reports(reports, limit=limit), start=1):
        style = CATEGORY_STYLES.get(report.category.value, 'white')
        table.add_row(
            str(rank),
            report.trader_id,
            f"{report.elo_score:.1f}",
            f"[{style}]{report.category.value}[/{style}]",
            str(report.reliability.total_trades),
        )

    console.print(table)


@cli.command()
@click.argument('payloads', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--top', 'top_n', type=click.IntRange(min=0), default=10, show_default=True,
              help='Top performers shown')
@click.pass_context
def stats(ctx, payloads, top_n):
    """Aggregate statistics across traders"""
    summary = summarize_reports(_score_all(ctx, payloads), top_n=top_n)

    console.print(f"\n[bold cyan]ELO Statistics[/bold cyan]")
    console.print(f"Traders: {summary['total_traders']}")
    console.print(f"Average ELO: {summary['average_elo']:.1f}\n")

    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Traders", justify="right")
    for category, count in summary['category_distribution'].items():
        table.add_row(category, str(count))
    console.print(table)

    if summary['top_performers']:
        console.print("\n[bold]Top performers:[/bold]")
        for entry in summary['top_performers']:
            console.print(f"  {entry['trader_id']}: {entry['elo_score']:.1f} ({entry['category']})")


def _load_request(path):
    """Read and validate a request file; exits on malformed input"""
    try:
        with open(path, 'r') as f:
            payload = json.load(f)
        return parse_request(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid request file {path}:[/red] {e}")
        sys.exit(1)


def _score_all(ctx, payloads):
    """Score every request file, skipping failed calculations"""
    calculator = ctx.obj['calculator']
    logger = ctx.obj['logger']

    reports = []
    for path in payloads:
        response = calculator.calculate_elo(*_load_request(path))
        if response.success:
            reports.append(response.elo)
        else:
            logger.warning(f"Skipping {path}: {response.error}")
            console.print(f"[yellow]Skipping {path}: {response.error}[/yellow]")

    return reports


if __name__ == '__main__':
    cli(obj={})
