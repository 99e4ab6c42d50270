"""Command-line entry point for an ingestion run."""
import argparse
import dataclasses
import logging
import signal
import sys
import threading

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from prep_ingest.config import BATCH_SCOPES, ERROR_POLICIES, load_settings
from prep_ingest.db import get_engine
from prep_ingest.errors import (
    ConfigError, InvariantBreach, SchemaInitError, SourceUnavailable, TransportError,
)
from prep_ingest.ingest import run_ingest
from prep_ingest.models import KINDS, TABLES
from prep_ingest.sources import get_source

EXIT_OK = 0
EXIT_INIT_FAILED = 1
EXIT_ABORTED = 2
EXIT_VALIDATION = 3

console = Console()
log = logging.getLogger("prep_ingest")

EVENT_STYLES = {
    "batch_committed": ("green", "committed"),
    "batch_rolled_back": ("cyan", "dry run"),
    "batch_failed": ("red", "failed"),
    "bundle_skipped": ("yellow", "skipped"),
    "run_cancelled": ("yellow", "cancelled"),
    "run_aborted": ("red", "aborted"),
}


def console_reporter(event) -> None:
    """Print one status line per batch or skipped bundle."""
    if event.kind not in EVENT_STYLES:
        return
    color, label = EVENT_STYLES[event.kind]
    target = f"{event.scope} [bold]{event.slug}[/bold]" if event.slug else ""
    counts = ", ".join(f"{k}={v}" for k, v in event.counts.items())
    line = f"[{color}]{label:<10}[/{color}] {target}"
    if counts:
        line += f" [dim]({counts})[/dim]"
    if event.detail and event.kind != "batch_committed":
        line += f"\n           [dim]{event.detail}[/dim]"
    console.print(line)


def show_summary(summary) -> None:
    title = "Ingestion Summary (dry run)" if summary.dry_run else "Ingestion Summary"
    table = Table(title=title)
    table.add_column("Entity", style="cyan")
    for outcome in ("Inserted", "Updated", "Unchanged", "Failed"):
        table.add_column(outcome, justify="right")
    for kind in KINDS:
        t = summary.tallies[kind]
        table.add_row(TABLES[kind], str(t.inserted), str(t.updated), str(t.unchanged), str(t.failed))
    table.add_row(
        "[bold]total[/bold]", str(summary.total("inserted")), str(summary.total("updated")),
        str(summary.total("unchanged")), str(summary.total("failed")),
    )
    console.print(table)
    console.print(
        f"  Batches committed: [bold]{summary.batches_committed}[/bold]  |  "
        f"failed: [bold]{summary.batches_failed}[/bold]  |  state: [bold]{summary.state}[/bold]"
        + (f" ({summary.abort_reason})" if summary.abort_reason else "")
    )
    if summary.verification is not None:
        show_verification(summary.verification)


def show_verification(report) -> None:
    counts = ", ".join(f"{t}={n}" for t, n in report.table_counts.items())
    console.print(f"  Rows: [dim]{counts}[/dim]")
    if report.healthy:
        console.print("  [green]Integrity checks passed.[/green]")
        return
    for table, n in report.orphans.items():
        if n:
            console.print(f"  [red]{n} orphaned row(s) in {table}[/red]")
    if report.unmatched_answers:
        ids = ", ".join(str(i) for i in report.unmatched_answers)
        console.print(f"  [red]Quiz questions with no matching option: {ids}[/red]")


def exit_code_for(summary) -> int:
    if summary.abort_reason == "validation":
        return EXIT_VALIDATION
    if summary.abort_reason is not None:
        return EXIT_ABORTED
    return EXIT_OK


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="prep-ingest", description="Load lesson content into the database.")
    parser.add_argument("--source", help="'embedded', a content directory, or an archive path/URL")
    parser.add_argument("--batch-scope", choices=BATCH_SCOPES)
    parser.add_argument("--on-error", choices=ERROR_POLICIES)
    parser.add_argument("--overwrite", action="store_true", default=None)
    parser.add_argument("--dry-run", action="store_true", default=None)
    parser.add_argument("--no-verify", action="store_true")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def _apply_overrides(config, args):
    changes = {"progress_reporter": console_reporter}
    if args.batch_scope:
        changes["batch_scope"] = args.batch_scope
    if args.on_error:
        changes["on_validation_error"] = args.on_error
    if args.overwrite:
        changes["overwrite_existing"] = True
    if args.dry_run:
        changes["dry_run"] = True
    if args.no_verify:
        changes["verify"] = False
    if args.log_level:
        changes["log_level"] = args.log_level
    return dataclasses.replace(config, **changes)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        database, config, source_spec = load_settings()
        config = _apply_overrides(config, args)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return EXIT_INIT_FAILED
    setup_logging(config.log_level)

    try:
        engine = get_engine(database.sqlalchemy_url(), config.statement_timeout)
    except (SQLAlchemyError, ImportError, OSError) as e:
        console.print(f"[red]Cannot open the database: {e}[/red]")
        return EXIT_INIT_FAILED
    source = get_source(args.source or source_spec)
    log.info("ingesting from %s into %s", args.source or source_spec, engine.url.render_as_string(hide_password=True))
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        summary = run_ingest(source, engine, config, cancel)
    except SchemaInitError as e:
        console.print(f"[red]Initialization failed: {e}[/red]")
        return EXIT_INIT_FAILED
    except (TransportError, InvariantBreach, SourceUnavailable) as e:
        console.print(f"[red]Run aborted: {e}[/red]")
        return EXIT_ABORTED
    finally:
        signal.signal(signal.SIGINT, previous)
        engine.dispose()

    show_summary(summary)
    return exit_code_for(summary)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
