from __future__ import annotations

import json

from typer.testing import CliRunner

from conftest import at
from tag_timeline.cli import app
from tag_timeline.db import database_connection, load_store, save_store

runner = CliRunner()


def _seed(db_path):
    with database_connection(db_path) as conn:
        store = load_store(conn)
        work = store.tag_by_name("work")
        edited = store.add_record(at(9), at(12), "deep work", [work.id])
        meeting = store.add_record(at(10), at(11), "meeting")
        save_store(conn, store)
    return edited, meeting


def test_conflicts_and_resolve(tmp_path) -> None:
    db_path = tmp_path / "records.sqlite3"
    edited, meeting = _seed(db_path)

    listed = runner.invoke(app, ["conflicts", edited.id, "--db", str(db_path)])
    assert listed.exit_code == 0
    assert meeting.id in listed.output

    resolved = runner.invoke(app, ["resolve", edited.id, "--db", str(db_path)])
    assert resolved.exit_code == 0

    with database_connection(db_path) as conn:
        records = load_store(conn).records()
    assert len(records) == 3
    assert edited.id not in {record.id for record in records}


def test_resolve_unknown_record_fails(tmp_path) -> None:
    result = runner.invoke(app, ["resolve", "missing", "--db", str(tmp_path / "db.sqlite3")])
    assert result.exit_code == 1


def test_summary_excludes_named_tag(tmp_path) -> None:
    db_path = tmp_path / "records.sqlite3"
    _seed(db_path)
    result = runner.invoke(
        app, ["summary", "--date", "2026-03-10", "--exclude", "work", "--db", str(db_path)]
    )
    assert result.exit_code == 0
    assert "Counted time:  01:00:00" in result.output


def test_timer_commands(tmp_path) -> None:
    db_path = str(tmp_path / "records.sqlite3")
    assert runner.invoke(app, ["start", "reading", "--tag", "learn", "--db", db_path]).exit_code == 0
    assert runner.invoke(app, ["start", "--db", db_path]).exit_code == 1
    assert runner.invoke(app, ["stop", "--db", db_path]).exit_code == 0
    assert runner.invoke(app, ["stop", "--db", db_path]).exit_code == 1


def test_export_and_merge_import(tmp_path) -> None:
    db_path = tmp_path / "records.sqlite3"
    _seed(db_path)
    target = tmp_path / "export.json"

    exported = runner.invoke(
        app,
        [
            "export",
            "--start",
            "2026-03-10",
            "--end",
            "2026-03-10",
            "--output",
            str(target),
            "--db",
            str(db_path),
        ],
    )
    assert exported.exit_code == 0
    assert len(json.loads(target.read_text())["records"]) == 2

    imported = runner.invoke(app, ["import", str(target), "--db", str(db_path)])
    assert imported.exit_code == 0
    assert "Added 0 records and 0 tags" in imported.output
