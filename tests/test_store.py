from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import at, make_record
from tag_timeline.models import ACTIVE_RECORD_ID, IntervalError
from tag_timeline.store import (
    DEFAULT_TAGS,
    DuplicateTagError,
    RecordStore,
    TimerAlreadyRunning,
)


def test_add_record_validates_interval(store) -> None:
    with pytest.raises(IntervalError):
        store.add_record(at(10), at(10))
    record = store.add_record(at(9), at(10), "  notes  ", ["work"])
    assert record.description == "notes"
    assert store.get_record(record.id) is record


def test_update_record_recomputes_duration(store) -> None:
    record = store.add_record(at(9), at(10))
    updated = store.update_record(record.id, end_time=at(11), tag_ids=["work", "work"])
    assert updated.duration == 7200
    assert updated.tag_ids == ("work",)


def test_update_record_rejects_inverted_interval(store) -> None:
    record = store.add_record(at(9), at(10))
    with pytest.raises(IntervalError):
        store.update_record(record.id, start_time=at(11))
    assert store.get_record(record.id).start_time == at(9)


def test_unknown_record_lookups_return_none(store) -> None:
    assert store.get_record("nope") is None
    assert store.update_record("nope", description="x") is None
    assert store.delete_record("nope") is False
    assert store.replace_record("nope", []) is False


def test_insert_record_skips_existing_id(store) -> None:
    assert store.insert_record(make_record("r1", at(9), at(10)))
    assert not store.insert_record(make_record("r1", at(11), at(12)))
    assert store.get_record("r1").start_time == at(9)


def test_records_between_uses_start_day(store) -> None:
    store.insert_record(make_record("late", at(23), at(23) + timedelta(hours=2)))
    store.insert_record(make_record("next", at(9) + timedelta(days=1), at(10) + timedelta(days=1)))
    assert [r.id for r in store.records_for_day(date(2026, 3, 10))] == ["late"]
    assert [r.id for r in store.records_for_week(date(2026, 3, 11))] == ["late", "next"]
    assert len(store.records_for_month(2026, 3)) == 2


def test_tag_names_are_unique_case_insensitively(store) -> None:
    with pytest.raises(DuplicateTagError):
        store.add_tag("WORK")
    tag = store.add_tag("  reading ", "#ABC")
    assert tag.name == "reading"
    assert tag.color == "#aabbcc"
    assert store.tag_by_name("Reading") is tag
    with pytest.raises(DuplicateTagError):
        store.update_tag(tag.id, name="game")


def test_deleted_tag_stays_on_records(store) -> None:
    record = store.add_record(at(9), at(10), tag_ids=["work"])
    assert store.delete_tag("work")
    assert store.get_record(record.id).tag_ids == ("work",)
    assert store.get_tag("work") is None


def test_excluded_tag_ids(store) -> None:
    assert store.excluded_tag_ids() == {"game"}


def test_timer_lifecycle(store) -> None:
    store.start_timer(at(9), "writing", ["work"])
    with pytest.raises(TimerAlreadyRunning):
        store.start_timer(at(9, 5))

    active = store.in_progress_record(at(9, 30))
    assert active.id == ACTIVE_RECORD_ID
    assert active.duration == 1800
    assert store.records() == []

    record = store.stop_timer(at(10))
    assert record.duration == 3600
    assert record.tag_ids == ("work",)
    assert store.timer is None
    assert store.stop_timer(at(11)) is None


def test_stopping_immediately_records_nothing(store) -> None:
    store.start_timer(at(9))
    assert store.stop_timer(at(9)) is None
    assert store.records() == []


def test_clear_reseeds_default_tags(store) -> None:
    store.add_record(at(9), at(10))
    store.start_timer(at(11))
    store.clear()
    assert store.records() == []
    assert store.timer is None
    assert sorted(tag.name for tag in store.tags()) == sorted(name for name, _ in DEFAULT_TAGS)


def test_default_store() -> None:
    assert len(RecordStore.with_default_tags().tags()) == len(DEFAULT_TAGS)
