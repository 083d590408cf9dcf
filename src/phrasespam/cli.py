"""Command-line interface for phrasespam.

Provides commands for database setup, learning, scoring, inspection and
configuration validation.

Usage:
    python -m phrasespam init-db
    python -m phrasespam learn --spam message.txt
    python -m phrasespam score --threshold 0.9 < message.txt
    python -m phrasespam dump --output phrases.txt
"""

from __future__ import annotations

import asyncio
import sys
import uuid
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, TypeVar

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from phrasespam.config import validate_config_file
from phrasespam.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    InsufficientDataError,
    MalformedInputError,
    PhraseSpamError,
    StorageUnavailableError,
)
from phrasespam.core.logging import bind_run_id, configure_logging

if TYPE_CHECKING:
    from phrasespam.classifier.bayes import SpamClassifier
    from phrasespam.config_schema import AppConfig
    from phrasespam.core.progress import ProgressEvent
    from phrasespam.db.store import StatStore

T = TypeVar("T")

console = Console()
# Status lines go to stderr so scores and dumps stay pipeable
status_console = Console(stderr=True)

# Exit status of `score` when the probability reaches --threshold
SPAM_EXIT_CODE = 2


@dataclass(frozen=True, slots=True)
class CLIOptions:
    """Global options shared by every command."""

    debug: bool
    config_path: Path | None
    db_path: Path | None


@dataclass(frozen=True, slots=True)
class CLIDeps:
    """Shared dependencies initialized by _init_cli_deps()."""

    config: AppConfig
    store: StatStore
    classifier: SpamClassifier


def _show_progress(event: ProgressEvent) -> None:
    """Print retry notifications as status lines."""
    if event.kind == "retry":
        status_console.print(
            f"[yellow]Database busy ({event.detail}), "
            f"retry {event.current}/{event.total}...[/yellow]"
        )


def _load_cli_config(options: CLIOptions) -> AppConfig:
    from phrasespam.config import get_config, load_config

    try:
        return load_config(options.config_path) if options.config_path else get_config()
    except (ConfigLoadError, ConfigValidationError) as e:
        console.print(
            f"[red]Config error:[/red] {e}\n\n"
            "Fix the file or run [cyan]phrasespam validate-config[/cyan] for details."
        )
        sys.exit(1)


async def _init_cli_deps(options: CLIOptions) -> CLIDeps:
    """Initialize shared CLI dependencies.

    Loads config, opens (and if needed creates or migrates) the database,
    and builds the classifier. Prints actionable error messages and calls
    sys.exit(1) on configuration failure.
    """
    from phrasespam.classifier.bayes import SpamClassifier
    from phrasespam.core.retry import RetryPolicy
    from phrasespam.db.store import StatStore

    # 1. Load config
    config = _load_cli_config(options)
    if not options.debug:
        configure_logging(log_level=config.logging.level, json_output=config.logging.json_output)

    # 2. Initialize database
    db_path = options.db_path or Path(config.database.path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    store = StatStore(
        db_path,
        retry=RetryPolicy(
            max_attempts=config.retry.max_attempts,
            interval=config.retry.interval_seconds,
        ),
        busy_timeout_ms=config.database.busy_timeout_ms,
    )
    await store.initialize(progress=_show_progress)

    # 3. Build classifier
    classifier = SpamClassifier.from_config(config, store)
    classifier.on_progress(_show_progress)

    return CLIDeps(config=config, store=store, classifier=classifier)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, mapping errors to messages and exit codes."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except InsufficientDataError as e:
        console.print(f"[red]Not enough data:[/red] {e}")
        sys.exit(1)
    except StorageUnavailableError as e:
        console.print(f"[red]Database unavailable:[/red] {e}")
        sys.exit(1)
    except MalformedInputError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        sys.exit(1)
    except PhraseSpamError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        sys.exit(1)


def _print_stats(phrase_count: int, spam: int, good: int) -> None:
    console.print(f"  Phrases:   {phrase_count}")
    console.print(f"  Messages:  {spam + good} ({spam} spam, {good} good)")


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config file (default: config/config.yaml)",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the phrase database (overrides database.path)",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config_path: Path | None, db_path: Path | None) -> None:
    """phrasespam - phrase-based Bayesian spam classifier."""
    log_level = "DEBUG" if debug else "WARNING"
    configure_logging(log_level=log_level, json_output=False)
    bind_run_id(uuid.uuid4().hex[:12])
    ctx.obj = CLIOptions(debug=debug, config_path=config_path, db_path=db_path)


@cli.command("validate-config")
@click.pass_obj
def validate_config(options: CLIOptions) -> None:
    """Validate the configuration file.

    Checks that the config file exists and passes Pydantic schema
    validation. Reports specific errors for invalid fields.
    """
    if options.config_path:
        console.print(f"Validating config: [cyan]{options.config_path}[/cyan]")
    else:
        console.print("Validating config: [cyan]config/config.yaml[/cyan]")

    is_valid, message = validate_config_file(options.config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {message}")
        sys.exit(1)


@cli.command("init-db")
@click.pass_obj
def init_db(options: CLIOptions) -> None:
    """Create the database, migrating a legacy SPAMSTATS table if present."""

    async def run() -> None:
        deps = await _init_cli_deps(options)
        stats = await deps.classifier.stats()
        console.print(f"[green]✓[/green] Database ready: [cyan]{deps.store.db_path}[/cyan]")
        _print_stats(stats.phrase_count, stats.spam_messages, stats.good_messages)

    _run(run())


@cli.command("learn")
@click.option("--spam", "is_spam", is_flag=True, help="Learn the message as spam")
@click.option("--good", "is_good", is_flag=True, help="Learn the message as good")
@click.argument("message_file", type=click.File("r", encoding="utf-8"), default="-")
@click.pass_obj
def learn(options: CLIOptions, is_spam: bool, is_good: bool, message_file: IO[str]) -> None:
    """Learn one message from FILE (or stdin) as spam or good."""
    if is_spam == is_good:
        raise click.UsageError("Specify exactly one of --spam or --good.")
    message = message_file.read()

    async def run() -> int:
        deps = await _init_cli_deps(options)
        return await deps.classifier.learn(message, is_spam=is_spam)

    recorded = _run(run())
    label = "spam" if is_spam else "good"
    console.print(f"[green]✓[/green] Learned as {label}: {recorded} phrases")


@cli.command("score")
@click.option(
    "--threshold",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help=f"Exit with status {SPAM_EXIT_CODE} when the score reaches this value",
)
@click.argument("message_file", type=click.File("r", encoding="utf-8"), default="-")
@click.pass_obj
def score(options: CLIOptions, threshold: float | None, message_file: IO[str]) -> None:
    """Print the spam probability of the message in FILE (or stdin)."""
    message = message_file.read()

    async def run() -> float:
        deps = await _init_cli_deps(options)
        return await deps.classifier.score(message)

    probability = _run(run())
    console.print(f"{probability:.6f}")
    if threshold is not None and probability >= threshold:
        sys.exit(SPAM_EXIT_CODE)


@cli.command("stats")
@click.pass_obj
def stats(options: CLIOptions) -> None:
    """Show phrase and message counts."""

    async def run() -> None:
        deps = await _init_cli_deps(options)
        result = await deps.classifier.stats()
        console.print(f"[bold]Database[/bold] [cyan]{deps.store.db_path}[/cyan]")
        _print_stats(result.phrase_count, result.spam_messages, result.good_messages)

    _run(run())


@cli.command("phrases")
@click.argument("message_file", type=click.File("r", encoding="utf-8"), default="-")
@click.pass_obj
def phrases(options: CLIOptions, message_file: IO[str]) -> None:
    """Show the stored counts and score of every phrase in FILE (or stdin)."""
    message = message_file.read()

    async def run() -> None:
        deps = await _init_cli_deps(options)
        details = await deps.classifier.phrase_details(message)

        table = Table(title=f"Phrases ({len(details)})")
        table.add_column("Phrase", overflow="fold")
        table.add_column("Spam", justify="right")
        table.add_column("Good", justify="right")
        table.add_column("Score", justify="right")
        for detail in details:
            table.add_row(
                escape(detail.phrase),
                str(detail.spam_count),
                str(detail.good_count),
                f"{detail.score:.4f}" if detail.score is not None else "[dim]-[/dim]",
            )
        console.print(table)

    _run(run())


@cli.command("dump")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report to this file instead of stdout",
)
@click.pass_obj
def dump(options: CLIOptions, output_path: Path | None) -> None:
    """Write every phrase with its counts plus summary statistics."""

    async def run() -> None:
        deps = await _init_cli_deps(options)
        if output_path is None:
            await deps.classifier.dump(sys.stdout)
            return
        with output_path.open("w", encoding="utf-8") as sink:
            result = await deps.classifier.dump(sink)
        status_console.print(
            f"[green]✓[/green] Wrote {result.rows} phrases to [cyan]{output_path}[/cyan]"
        )

    _run(run())


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
