"""Command-line interface for github-activity-report."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .aggregator import ActivityAggregator
from .config import Config, load_config
from .llm import LLMClient
from .models import ActivityRecord
from .notifiers import build_notifiers
from .report import generate_markdown_report
from .reporter import Reporter
from .sources.github import GitHubEventSource

app = typer.Typer(help="Generate activity reports from a GitHub user's event timeline")
console = Console()


def main():
    """Entry point for the CLI application."""
    app()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_file: Path) -> Config:
    try:
        return load_config(config_file)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(1)


def _resolve_days(days: int | None, config: Config) -> int:
    if days is None:
        return config.days
    if days <= 0:
        console.print(f"[red]Error: --days must be a positive number, got {days}[/red]")
        raise typer.Exit(1)
    return days


def _window(days: int) -> tuple[datetime, datetime]:
    until = datetime.now(timezone.utc)
    return until - timedelta(days=days), until


def build_aggregator(config: Config, username: str) -> ActivityAggregator:
    """Create an aggregator reading ``username``'s timeline with the right token."""
    source = GitHubEventSource(
        token=config.token_for(username),
        endpoint=config.github.endpoint,
        per_page=config.fetch.per_page,
    )
    return ActivityAggregator(
        source,
        max_workers=config.fetch.max_workers,
        page_retries=config.fetch.page_retries,
        backoff_base=config.fetch.backoff_base,
        timeout=config.fetch.timeout,
        stop_at_window_start=config.fetch.stop_at_window_start,
    )


def _print_statistics(record: ActivityRecord) -> None:
    table = Table(title=f"{record.username}: {record.since.date()} to {record.until.date()}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in record.statistics().as_dict().items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)


@app.command()
def generate(
    config_file: Path = typer.Option(
        "config.yaml",
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    users: list[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="Only report on the given user(s). Can be used multiple times.",
    ),
    days: int = typer.Option(
        None,
        "--days",
        "-d",
        help="Number of days to look back (overrides config file setting)",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path (overrides config file setting)",
    ),
    llm: bool = typer.Option(
        False, "--llm/--no-llm", help="Write a prose report with the configured LLM"
    ),
    notify: bool = typer.Option(
        False, "--notify/--no-notify", help="Send prose reports to enabled notifiers"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Generate an activity report for the configured users.

    Every user's event timeline is replayed over the reporting window, the
    statistics are written to a Markdown report and, with --llm, a prose
    summary is generated and optionally sent to chat webhooks.
    """
    _setup_logging(verbose)
    config = _load(config_file)

    usernames = list(users) if users else config.report_usernames()
    if not usernames:
        console.print(
            "[red]Error: no users to report on. Pass --user or set github.usernames[/red]"
        )
        raise typer.Exit(1)

    if notify and not llm:
        console.print("[yellow]--notify requires --llm; notifications disabled[/yellow]")
        notify = False

    notifiers = build_notifiers(config) if notify else []
    if notify and not notifiers:
        console.print("[yellow]No notifiers are enabled in the configuration[/yellow]")

    since, until = _window(_resolve_days(days, config))
    output_path = output or config.output or f"activity-report-{until.date()}.md"

    console.print("[bold blue]GitHub Activity Report Generator[/bold blue]")
    console.print(f"Period: {since.date()} to {until.date()}")
    console.print(f"Users: {', '.join(usernames)}")
    console.print(f"Output: {output_path}\n")

    records: list[ActivityRecord] = []
    failures = 0

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        for username in usernames:
            task = progress.add_task(f"Fetching activity for {username}...", total=None)
            aggregator = build_aggregator(config, username)

            try:
                record = aggregator.fetch(username, since, until)
                records.append(record)
                progress.update(task, description=f"[green]✓[/green] {username}")
            except Exception as e:
                failures += 1
                progress.update(task, description=f"[red]✗[/red] {username}: {e}")
                console.print(f"[red]Error fetching activity for {username}:[/red] {e}")
                progress.remove_task(task)
                continue

            if llm:
                progress.update(task, description=f"Writing report for {username}...")
                try:
                    reporter = Reporter(aggregator, LLMClient(config.llm))
                    text = reporter.write_report(record)
                except Exception as e:
                    failures += 1
                    console.print(f"[red]Error generating report for {username}:[/red] {e}")
                else:
                    console.print(text)
                    for notifier in notifiers:
                        try:
                            notifier.send(text)
                            console.print(f"[green]Sent {username}'s report to {notifier.name}[/green]")
                        except Exception as e:
                            console.print(f"[red]Error notifying {notifier.name}:[/red] {e}")

            progress.remove_task(task)

    for record in records:
        _print_statistics(record)

    if not records:
        console.print("[red]No activity could be collected[/red]")
        raise typer.Exit(1)

    try:
        generate_markdown_report(records, output_path)
        console.print(f"\n[bold green]✓[/bold green] Report generated: {output_path}")
    except Exception as e:
        console.print(f"[red]Error generating report:[/red] {e}")
        raise typer.Exit(1)

    if failures:
        raise typer.Exit(1)


@app.command()
def stats(
    username: str = typer.Argument(..., help="GitHub username"),
    config_file: Path = typer.Option(
        "config.yaml",
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    days: int = typer.Option(None, "--days", "-d", help="Number of days to look back"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Print activity statistics for a single user."""
    _setup_logging(verbose)
    config = _load(config_file)
    since, until = _window(_resolve_days(days, config))

    aggregator = build_aggregator(config, username)
    with console.status(f"Fetching activity for {username}..."):
        try:
            record = aggregator.fetch(username, since, until)
        except Exception as e:
            console.print(f"[red]Error fetching activity for {username}:[/red] {e}")
            raise typer.Exit(1)

    _print_statistics(record)
    console.print(f"API calls: {aggregator.source.get_api_call_count()}")


@app.command()
def validate(
    config_file: Path = typer.Option(
        "config.yaml",
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
):
    """Validate the configuration file without fetching anything.

    This command checks that the configuration file is properly formatted
    and contains all required fields.
    """
    try:
        config = load_config(config_file)
        console.print("[green]✓[/green] Configuration is valid")
        console.print(f"\nEndpoint: {config.github.endpoint}")
        console.print(f"Tokens configured: {len(config.github.tokens)}")
        console.print(f"Users: {', '.join(config.report_usernames()) or '-'}")
        console.print(f"Window: {config.days} days")
        console.print(f"LLM: {config.llm.provider} ({config.llm.model})")
        for name, notifier in (("WeChat", config.wechat), ("Feishu", config.feishu)):
            console.print(f"{name}: {'enabled' if notifier.enabled else 'disabled'}")

    except Exception as e:
        console.print(f"[red]✗ Configuration is invalid:[/red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    main()
