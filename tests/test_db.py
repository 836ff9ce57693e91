from __future__ import annotations

from conftest import at, make_record
from tag_timeline.db import (
    database_connection,
    load_records,
    load_store,
    load_tags,
    save_records,
    save_store,
    save_tags,
)
from tag_timeline.models import Tag
from tag_timeline.store import DEFAULT_TAGS


def test_fresh_database_is_seeded_once(tmp_path) -> None:
    db_path = tmp_path / "records.sqlite3"
    with database_connection(db_path) as conn:
        store = load_store(conn)
        assert store.records() == []
        assert store.timer is None
        assert len(store.tags()) == len(DEFAULT_TAGS)
        save_tags(conn, [])

    with database_connection(db_path) as conn:
        assert load_store(conn).tags() == []


def test_records_round_trip_with_tag_order(tmp_path) -> None:
    records = [
        make_record("r1", at(9), at(10, 0, 0).replace(microsecond=250000), tag_ids=("b", "a")),
        make_record("r2", at(11), at(12), description="notes"),
    ]
    with database_connection(tmp_path / "db.sqlite3") as conn:
        save_records(conn, records)
        loaded = load_records(conn)

    assert loaded == records


def test_save_replaces_previous_contents(tmp_path) -> None:
    with database_connection(tmp_path / "db.sqlite3") as conn:
        save_records(conn, [make_record("r1", at(9), at(10))])
        save_records(conn, [make_record("r2", at(11), at(12))])
        assert [r.id for r in load_records(conn)] == ["r2"]

        tags = [Tag(id="x", name="x", color="#000000", is_excluded=True)]
        save_tags(conn, tags)
        assert load_tags(conn) == tags


def test_store_round_trip_includes_timer(tmp_path) -> None:
    db_path = tmp_path / "db.sqlite3"
    with database_connection(db_path) as conn:
        store = load_store(conn)
        store.add_record(at(9), at(10), "a", [store.tags()[0].id])
        store.start_timer(at(11), "running", [store.tags()[1].id])
        save_store(conn, store)

    with database_connection(db_path) as conn:
        reloaded = load_store(conn)
    assert len(reloaded.records()) == 1
    assert reloaded.timer.description == "running"
    assert reloaded.timer.start_time == at(11)

    with database_connection(db_path) as conn:
        reloaded.stop_timer(at(12))
        save_store(conn, reloaded)
        assert load_store(conn).timer is None
