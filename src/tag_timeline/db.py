"""SQLite persistence for records, tags and the running timer."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .models import Record, Tag, TimerState
from .store import RecordStore, default_tags


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

_TAGS_SEEDED_KEY = "tags_seeded"

logger = logging.getLogger(__name__)


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS records (
            id TEXT PRIMARY KEY,
            description TEXT NOT NULL DEFAULT '',
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_records_start_time
            ON records(start_time);

        CREATE TABLE IF NOT EXISTS record_tags (
            record_id TEXT NOT NULL REFERENCES records(id) ON DELETE CASCADE,
            tag_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            PRIMARY KEY (record_id, tag_id)
        );

        CREATE TABLE IF NOT EXISTS tags (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            color TEXT NOT NULL,
            is_excluded INTEGER NOT NULL DEFAULT 0,
            position INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS timer_state (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            start_time TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            tag_ids TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def _format(value: datetime) -> str:
    return value.strftime(DATETIME_FMT)


def _parse(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FMT)


def load_records(conn: sqlite3.Connection) -> list[Record]:
    tag_rows = conn.execute(
        "SELECT record_id, tag_id FROM record_tags ORDER BY record_id, position"
    )
    tags_by_record: dict[str, list[str]] = {}
    for row in tag_rows:
        tags_by_record.setdefault(row["record_id"], []).append(row["tag_id"])

    return [
        Record(
            id=row["id"],
            description=row["description"],
            tag_ids=tuple(tags_by_record.get(row["id"], ())),
            start_time=_parse(row["start_time"]),
            end_time=_parse(row["end_time"]),
        )
        for row in conn.execute(
            "SELECT id, description, start_time, end_time FROM records ORDER BY start_time, id"
        )
    ]


def save_records(conn: sqlite3.Connection, records: Iterable[Record]) -> None:
    """Replace every stored record with the given collection."""
    records = list(records)
    with transaction(conn):
        conn.execute("DELETE FROM record_tags")
        conn.execute("DELETE FROM records")
        conn.executemany(
            """
            INSERT INTO records (id, description, start_time, end_time)
            VALUES (?, ?, ?, ?)
            """,
            [
                (
                    record.id,
                    record.description,
                    _format(record.start_time),
                    _format(record.end_time),
                )
                for record in records
            ],
        )
        conn.executemany(
            "INSERT INTO record_tags (record_id, tag_id, position) VALUES (?, ?, ?)",
            [
                (record.id, tag_id, position)
                for record in records
                for position, tag_id in enumerate(record.tag_ids)
            ],
        )
    logger.debug("Saved %d records.", len(records))


def load_tags(conn: sqlite3.Connection) -> list[Tag]:
    return [
        Tag(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            is_excluded=bool(row["is_excluded"]),
        )
        for row in conn.execute(
            "SELECT id, name, color, is_excluded FROM tags ORDER BY position"
        )
    ]


def save_tags(conn: sqlite3.Connection, tags: Iterable[Tag]) -> None:
    tags = list(tags)
    with transaction(conn):
        conn.execute("DELETE FROM tags")
        conn.executemany(
            """
            INSERT INTO tags (id, name, color, is_excluded, position)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (tag.id, tag.name, tag.color, 1 if tag.is_excluded else 0, position)
                for position, tag in enumerate(tags)
            ],
        )
        _set_meta(conn, _TAGS_SEEDED_KEY, "1")


def load_timer(conn: sqlite3.Connection) -> Optional[TimerState]:
    row = conn.execute(
        "SELECT start_time, description, tag_ids FROM timer_state WHERE id = 1"
    ).fetchone()
    if row is None:
        return None
    return TimerState(
        start_time=_parse(row["start_time"]),
        description=row["description"],
        tag_ids=tuple(json.loads(row["tag_ids"])),
    )


def save_timer(conn: sqlite3.Connection, timer: Optional[TimerState]) -> None:
    if timer is None:
        conn.execute("DELETE FROM timer_state")
        return
    conn.execute(
        """
        INSERT INTO timer_state (id, start_time, description, tag_ids)
        VALUES (1, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            start_time = excluded.start_time,
            description = excluded.description,
            tag_ids = excluded.tag_ids
        """,
        (_format(timer.start_time), timer.description, json.dumps(list(timer.tag_ids))),
    )


def load_store(conn: sqlite3.Connection) -> RecordStore:
    """Read a full snapshot; a fresh database is seeded with default tags."""
    if _get_meta(conn, _TAGS_SEEDED_KEY) is None:
        logger.info("Seeding default tags.")
        save_tags(conn, default_tags())
    return RecordStore(
        records=load_records(conn),
        tags=load_tags(conn),
        timer=load_timer(conn),
    )


def save_store(conn: sqlite3.Connection, store: RecordStore) -> None:
    save_tags(conn, store.tags())
    save_records(conn, store.records())
    save_timer(conn, store.timer)


def _get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def _set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        """
        INSERT INTO meta (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
