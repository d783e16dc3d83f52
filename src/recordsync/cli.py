"""CLI for recordsync.

Checks whether the records of an index and the files of a directory are in
sync and repairs drift, interactively or automatically. Example cron entry for
unattended repair::

    recsync -q sync /srv/media --db /srv/media.db --auto --yes
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from recordsync import __version__
from recordsync.config import CliOverrides, SyncConfig, load_config
from recordsync.db import MetadataStore
from recordsync.decisions import FixedAnswer, PromptDecision
from recordsync.engine import Reconciler, database_files
from recordsync.errors import ConfigError, FatalStoreError, StoreError
from recordsync.fs import LocalFileSystem
from recordsync.hashing import ChecksumProvider
from recordsync.models import Drift, ItemResult, SessionResult

app = typer.Typer(
    name="recsync",
    help="Reconcile an index of file records with a directory.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

DRIFT_STYLES = {
    Drift.IN_SYNC: "green",
    Drift.NOT_READABLE: "red",
    Drift.ORPHANED_RECORD: "yellow",
    Drift.CHECKSUM_MISMATCH: "yellow",
    Drift.ORPHANED_FILE: "yellow",
}


def setup_logging(verbose: bool, json_mode: bool = False) -> None:
    """Configure loguru for terminal output. Stderr for logs if JSON mode."""
    logger.remove()
    level = "ERROR" if json_mode and not verbose else ("DEBUG" if verbose else "INFO")

    logger.add(
        RichHandler(rich_tracebacks=True, console=Console(stderr=True), show_time=False),
        format="{message}",
        level=level,
    )


def version_callback(value: bool):
    """Print the version and exit."""
    if value:
        console.print(f"recordsync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    _version: Annotated[
        bool,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit."
        ),
    ] = False,
) -> None:
    """Keep file records and files in sync."""
    setup_logging(verbose)


def _print_settings(config: SyncConfig) -> None:
    table = Table(box=None, show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Index", escape(str(config.db_path)))
    table.add_row("Base directory", escape(str(config.base_directory)))
    table.add_row("Search directory", escape(str(config.directory)))
    table.add_row("Checksum", config.algorithm)
    mode = "yes" if config.auto else ("report only" if config.dry_run else "no")
    table.add_row("Automatic repair", mode)
    console.print(table)


def _print_item(item: ItemResult) -> None:
    arrow = f"-> record/{item.record_id}" if item.record_id is not None else "<- record/?"
    status = f"[{DRIFT_STYLES[item.drift]}]{item.drift.value}[/]"
    if item.repair is not None:
        status += f" [bold green]{item.repair.value}[/]"
    if item.error is not None:
        status += " [bold red]failed[/]"
    console.print(f"{escape(str(item.path)):<60} {arrow} {status}")


def _print_summary(session: SessionResult) -> None:
    counts = session.by_drift()
    table = Table(title="Sync Summary", box=None, show_header=True)
    table.add_column("Result", style="cyan")
    table.add_column("Count", justify="right", style="magenta")

    for drift in Drift:
        table.add_row(drift.value.replace("_", " ").capitalize(), str(counts.get(drift, 0)))
    table.add_row("Repaired", str(session.repair_count))
    table.add_row("Errors", str(session.error_count))
    console.print(table)

    for phase in session.phases:
        if phase.aborted:
            console.print(
                f"[bold red]Phase {phase.name} aborted:[/bold red] {escape(phase.aborted)}"
            )
        elif phase.cancelled:
            console.print(f"[bold yellow]Phase {phase.name} cancelled.[/bold yellow]")


def _missing_index(db_path: Path, json_output: bool) -> None:
    if json_output:
        print(json.dumps({"error": f"Index {db_path} does not exist"}))
    else:
        console.print(
            f"[bold red]Error:[/bold red] Index [yellow]{escape(str(db_path))}[/yellow] does not "
            "exist. Create it with [cyan]recsync add[/cyan]."
        )


@app.command()
def sync(
    ctx: typer.Context,
    directory: Annotated[
        Path | None, typer.Argument(help="Directory to search for files.")
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to SQLite index database.")] = None,
    base: Annotated[
        Path | None,
        typer.Option("--base", help="Base directory record locations are relative to."),
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML file with a [sync] table.")
    ] = None,
    auto: Annotated[
        bool, typer.Option("--auto", help="Repair automatically (destructive!).")
    ] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report drift without repairing anything.")
    ] = False,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip the settings confirmation.")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only report drift.")] = False,
    algorithm: Annotated[
        str | None, typer.Option("--algorithm", help="Checksum algorithm: xxh128 or md5.")
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", help="Output results in JSON format.")
    ] = False,
) -> None:
    """Check records against files and files against records."""
    verbose = ctx.parent.params.get("verbose", False) if ctx.parent else False
    setup_logging(verbose, json_mode=json_output)

    try:
        config = load_config(
            config_file,
            CliOverrides(
                directory=directory,
                db_path=db,
                base_directory=base,
                algorithm=algorithm,
                auto=auto or None,
                dry_run=dry_run or None,
                quiet=quiet or None,
            ),
        )
    except ConfigError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if not config.directory.is_dir():
        if json_output:
            print(json.dumps({"error": f"Directory {config.directory} does not exist"}))
        else:
            console.print(
                f"[bold red]Error:[/bold red] Directory [yellow]{escape(str(config.directory))}"
                "[/yellow] does not exist."
            )
        raise typer.Exit(1)

    if not config.db_path.is_file():
        _missing_index(config.db_path, json_output)
        raise typer.Exit(1)

    tty = sys.stdin.isatty()
    interactive = tty and not (config.auto or config.dry_run or json_output)

    if not json_output:
        console.print()
        _print_settings(config)
        if tty and not yes and not Confirm.ask("Looks OK?", default=True, console=console):
            raise typer.Exit(1)

    decisions = (
        PromptDecision(console, default=config.default_answer)
        if interactive
        else FixedAnswer(config.default_answer)
    )
    show_items = not (config.quiet or json_output)

    try:
        with MetadataStore(config.db_path, config.base_directory) as store:
            reconciler = Reconciler(
                store,
                config.directory,
                filesystem=LocalFileSystem(
                    ignores=frozenset(config.ignores), exclude=database_files(config.db_path)
                ),
                checksums=ChecksumProvider(config.algorithm),
                decisions=decisions,
                default_answer=config.default_answer,
                manual_only=config.manual_only,
                on_item=_print_item if show_items else None,
            )
            session = reconciler.run()
    except KeyboardInterrupt as e:
        logger.warning("Interrupted")
        raise typer.Exit(130) from e
    except FatalStoreError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            logger.error("Sync failed: {}", e)
        raise typer.Exit(1) from e

    if json_output:
        print(json.dumps({"config": config.to_public_dict(), **session.to_dict()}, indent=2))
    else:
        console.print()
        _print_summary(session)

    if session.error_count or session.aborted:
        raise typer.Exit(2)


@app.command()
def add(
    files: Annotated[list[Path], typer.Argument(help="Files to index.")],
    db: Annotated[Path, typer.Option("--db", help="Path to SQLite index database.")] = Path(
        "recordsync.db"
    ),
    base: Annotated[
        Path, typer.Option("--base", help="Base directory record locations are relative to.")
    ] = Path("."),
    algorithm: Annotated[
        str, typer.Option("--algorithm", help="Checksum algorithm: xxh128 or md5.")
    ] = "xxh128",
) -> None:
    """Add records for existing files."""
    try:
        checksums = ChecksumProvider(algorithm)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e

    failed = 0
    try:
        with MetadataStore(db, base.resolve()) as store:
            for file_path in files:
                file_path = file_path.resolve()
                try:
                    dirname, basename = store.relative_location(file_path)
                    record_id = store.add(dirname, basename, checksums.checksum(file_path))
                except ValueError:
                    logger.error("{} is not below {}", file_path, store.base_directory)
                    failed += 1
                    continue
                except (OSError, StoreError) as e:
                    logger.error("Cannot add {}: {}", file_path, e)
                    failed += 1
                    continue
                console.print(f"{escape(str(file_path))} -> record/{record_id}")
    except FatalStoreError as e:
        logger.error("Add failed: {}", e)
        raise typer.Exit(1) from e

    if failed:
        raise typer.Exit(2)


@app.command()
def stats(
    ctx: typer.Context,
    db: Annotated[Path, typer.Option("--db", help="Path to SQLite index database.")] = Path(
        "recordsync.db"
    ),
    json_output: Annotated[
        bool, typer.Option("--json", help="Output results in JSON format.")
    ] = False,
) -> None:
    """Show index statistics."""
    verbose = ctx.parent.params.get("verbose", False) if ctx.parent else False
    setup_logging(verbose, json_mode=json_output)
    if not db.is_file():
        _missing_index(db, json_output)
        raise typer.Exit(1)
    try:
        with MetadataStore(db, Path.cwd()) as store:
            s = {"records": store.count(), "schema_version": store.schema_version}
        if json_output:
            print(json.dumps(s, indent=2))
        else:
            table = Table(title=f"Index: [cyan]{escape(db.name)}[/cyan]", box=None)
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right", style="magenta")
            table.add_row("Records", str(s["records"]))
            table.add_row("Schema Version", f"v{s['schema_version']}")
            console.print(table)
    except StoreError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            logger.error("Failed to fetch stats: {}", e)
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
