"""Command-line interface for the tag timeline."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .db import database_connection, load_store, save_store
from .paths import get_db_path, get_export_dir
from .server_runner import run_dashboard
from .store import RecordStore

app = typer.Typer(help="Track time as tagged records on a day timeline.")

_DB_OPTION_HELP = "Location of the records SQLite database."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@contextmanager
def _open_store(db_path: Optional[Path], *, save: bool) -> Iterator[RecordStore]:
    with database_connection(db_path or get_db_path()) as conn:
        store = load_store(conn)
        yield store
        if save:
            save_store(conn, store)


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


def _tag_ids(store: RecordStore, names: List[str]) -> list[str]:
    ids = []
    for name in names:
        tag = store.tag_by_name(name)
        if tag is None:
            raise typer.BadParameter(f"Unknown tag {name!r}")
        ids.append(tag.id)
    return ids


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    exclude: List[str] = typer.Option(
        [],
        "--exclude",
        "-x",
        help="Tag name to leave out of the total (repeatable).",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help=_DB_OPTION_HELP,
    ),
) -> None:
    """Print a summary of a single day."""
    from .reporting import SummaryPrinter

    target = _parse_day(date)
    with _open_store(db_path, save=False) as store:
        SummaryPrinter(store).print_daily_summary(target, _tag_ids(store, exclude))


@app.command()
def start(
    description: str = typer.Argument("", help="What you are working on."),
    tags: List[str] = typer.Option([], "--tag", "-t", help="Tag name (repeatable)."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """Start the timer."""
    from .store import TimerAlreadyRunning

    with _open_store(db_path, save=True) as store:
        try:
            timer = store.start_timer(datetime.now(), description, _tag_ids(store, tags))
        except TimerAlreadyRunning:
            typer.echo("A timer is already running; stop it first.", err=True)
            raise typer.Exit(code=1)
    typer.echo(f"Timer started at {timer.start_time:%H:%M:%S}.")


@app.command()
def stop(
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """Stop the timer and keep the elapsed time as a record."""
    from .reporting import format_short

    with _open_store(db_path, save=True) as store:
        if store.timer is None:
            typer.echo("No timer is running.", err=True)
            raise typer.Exit(code=1)
        record = store.stop_timer(datetime.now())
    if record is None:
        typer.echo("Timer stopped; nothing recorded.")
    else:
        typer.echo(f"Recorded {format_short(record.duration)} ({record.id}).")


@app.command()
def conflicts(
    record_id: str = typer.Argument(..., help="Record to check."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """List records overlapping the given record."""
    from .conflicts import detect_conflicts
    from .reporting import format_short

    with _open_store(db_path, save=False) as store:
        record = store.get_record(record_id)
        if record is None:
            typer.echo(f"Record {record_id} not found.", err=True)
            raise typer.Exit(code=1)
        found = detect_conflicts(
            store.records(), record.start_time, record.end_time, exclude_id=record.id
        )
    if not found:
        typer.echo("No conflicts.")
        return
    for conflict in found:
        other = conflict.other_record
        typer.echo(
            f"{other.id}  {other.start_time:%H:%M}-{other.end_time:%H:%M}"
            f"  {other.description or '(no description)'}"
            f"  overlaps {format_short(conflict.overlap_duration)}"
        )


@app.command()
def resolve(
    record_id: str = typer.Argument(..., help="Record to trim or split."),
    conflict_id: Optional[str] = typer.Option(
        None, "--against", help="Only resolve against this record; default is all conflicts."
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """Remove overlapping time from a record."""
    from .resolver import resolve_all_conflicts, resolve_overlap

    with _open_store(db_path, save=True) as store:
        if conflict_id:
            result = resolve_overlap(store, record_id, conflict_id)
        else:
            result = resolve_all_conflicts(store, record_id)
    if result is None:
        typer.echo("Record not found.", err=True)
        raise typer.Exit(code=1)
    if not result:
        typer.echo("Record was fully covered and has been deleted.")
        return
    for record in result:
        typer.echo(f"{record.id}  {record.start_time:%Y-%m-%d %H:%M}-{record.end_time:%H:%M}")


@app.command("export")
def export_records(
    start_date: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD)."),
    end_date: str = typer.Option(..., "--end", help="Last day (YYYY-MM-DD)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", path_type=Path),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """Write records in a date range, plus all tags, to a JSON file."""
    from .transfer import export_filename, export_json

    first_day = _parse_day(start_date)
    last_day = _parse_day(end_date)
    if last_day < first_day:
        raise typer.BadParameter("--end must be on or after --start")
    with _open_store(db_path, save=False) as store:
        text = export_json(store, first_day, last_day)
    target = output or get_export_dir() / export_filename(first_day, last_day)
    target.write_text(text, encoding="utf-8")
    typer.echo(f"Exported to {target}")


@app.command("import")
def import_records(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, path_type=Path),
    replace: bool = typer.Option(
        False, "--replace", help="Replace all records and tags instead of merging."
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=_DB_OPTION_HELP),
) -> None:
    """Import a JSON export, merging by default."""
    from .transfer import ImportFormatError, merge_import, parse_import, replace_import

    try:
        preview = parse_import(source.read_text(encoding="utf-8"))
    except ImportFormatError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    with _open_store(db_path, save=True) as store:
        if replace:
            result = replace_import(store, preview.document)
        else:
            result = merge_import(store, preview.document)
    typer.echo(
        f"Added {result.added_records} records and {result.added_tags} tags"
        f" ({result.skipped_records} skipped)."
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help=_DB_OPTION_HELP
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the local dashboard API."""
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        open_browser=open_browser,
    )
