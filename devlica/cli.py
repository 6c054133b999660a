"""Devlica CLI: build agent skills that imitate a GitHub developer."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from devlica import __version__
from devlica.core.config import ConfigError, Settings, configure_logging, settings
from devlica.core.llm import LLMError
from devlica.ingestion.crawler import CrawlError, Crawler
from devlica.pipeline import PipelineEvent, crawl_totals, run_pipeline
from devlica.synthesis.benchmark import BenchmarkError, BenchmarkResult
from devlica.synthesis.parsing import LLMResponseParseError

app = typer.Typer(help="Devlica: turn a developer's GitHub activity into agent skills.")

console = Console(stderr=True)

_FAILURES = (ConfigError, CrawlError, LLMError, LLMResponseParseError, BenchmarkError, OSError)


def _settings_with(**overrides) -> Settings:
    return settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


async def _print_event(event: PipelineEvent) -> None:
    if event.status == "failed":
        return
    style = {"started": "yellow", "completed": "green", "skipped": "dim"}.get(event.status, "")
    console.print(f"[{style}]{event.stage}[/{style}] {event.message}")


def _benchmark_table(result: BenchmarkResult) -> Table:
    table = Table(title=f"Benchmark: {result.final_score:.1f}/100 in {result.iterations} iteration(s)")
    table.add_column("Iteration", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Samples", justify="right")
    for it in result.history:
        table.add_row(str(it.iteration), f"{it.score:.1f}", str(len(it.pairs)))
    return table


@app.command("run")
def run(
    username: str = typer.Argument(..., help="GitHub username to analyze"),
    provider: str = typer.Option(None, "--provider", "-p", help="LLM provider: openai, anthropic, ollama"),
    model: str = typer.Option(None, "--model", "-m", help="LLM model (default: per provider)"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory for generated skills"),
    max_repos: int = typer.Option(None, "--max-repos", help="Repositories to deep-crawl"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Crawl, analyze, benchmark and write skills for USERNAME."""
    cfg = _settings_with(
        llm_provider=provider, llm_model=model, output_dir=output, max_repos=max_repos
    )
    configure_logging("DEBUG" if verbose else cfg.log_level)
    logging.getLogger(__name__).info(
        "starting devlica %s for %s (%s/%s)",
        __version__,
        username,
        cfg.llm_provider,
        cfg.effective_model,
    )

    try:
        result = asyncio.run(run_pipeline(cfg, username, on_progress=_print_event))
    except _FAILURES as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130)

    if result.benchmark.skipped:
        console.print("[dim]Benchmark skipped: no review comments with diff context.[/dim]")
    else:
        console.print(_benchmark_table(result.benchmark))

    for path in result.skill_paths:
        typer.echo(str(path))


@app.command("crawl")
def crawl(
    username: str = typer.Argument(..., help="GitHub username to crawl"),
    max_repos: int = typer.Option(None, "--max-repos", help="Repositories to deep-crawl"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Crawl USERNAME and print what was collected, without calling an LLM."""
    cfg = _settings_with(max_repos=max_repos)
    configure_logging("DEBUG" if verbose else cfg.log_level)

    if not cfg.github_token:
        console.print("[red]Error: GITHUB_TOKEN environment variable is required[/red]")
        raise typer.Exit(1)

    try:
        data = asyncio.run(Crawler(cfg.github_token, cfg.max_repos).crawl(username))
    except CrawlError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130)

    table = Table(title=f"GitHub activity for {username}")
    table.add_column("Source", style="cyan")
    table.add_column("Count", justify="right")
    for name, count in crawl_totals(data).items():
        table.add_row(name, str(count))
    table.add_row("issue_comments", str(len(data.issue_comments)))
    table.add_row("events", str(len(data.events)))
    table.add_row("orgs", str(len(data.orgs)))
    Console().print(table)


if __name__ == "__main__":
    app()
