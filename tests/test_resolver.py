from __future__ import annotations

from conftest import at, make_record
from tag_timeline.conflicts import detect_conflicts
from tag_timeline.resolver import resolve_all_conflicts, resolve_overlap, split_around
from tag_timeline.store import RecordStore


def _store(*records) -> RecordStore:
    return RecordStore(records=records)


def _intervals(records):
    return [(r.start_time, r.end_time) for r in records]


def test_containment_splits_in_two() -> None:
    store = _store(
        make_record("edited", at(9), at(12), tag_ids=("work",), description="deep work"),
        make_record("meeting", at(10), at(11)),
    )
    result = resolve_overlap(store, "edited", "meeting")

    assert _intervals(result) == [(at(9), at(10)), (at(11), at(12))]
    assert [r.duration for r in result] == [3600, 3600]
    assert all(r.description == "deep work" and r.tag_ids == ("work",) for r in result)
    assert len({r.id for r in result} | {"edited"}) == 3
    assert store.get_record("edited") is None
    assert store.get_record("meeting").start_time == at(10)


def test_left_clip_keeps_tail() -> None:
    store = _store(make_record("edited", at(10), at(12)), make_record("c", at(9), at(11)))
    result = resolve_overlap(store, "edited", "c")
    assert _intervals(result) == [(at(11), at(12))]


def test_right_clip_keeps_head() -> None:
    store = _store(make_record("edited", at(10), at(12)), make_record("c", at(11), at(13)))
    result = resolve_overlap(store, "edited", "c")
    assert _intervals(result) == [(at(10), at(11))]


def test_full_cover_deletes_record() -> None:
    store = _store(make_record("edited", at(10), at(10, 30)), make_record("c", at(9), at(12)))
    assert resolve_overlap(store, "edited", "c") == []
    assert store.get_record("edited") is None
    assert [r.id for r in store.records()] == ["c"]


def test_identical_interval_counts_as_full_cover() -> None:
    store = _store(make_record("edited", at(10), at(11)), make_record("c", at(10), at(11)))
    assert resolve_overlap(store, "edited", "c") == []


def test_shared_start_clips_left() -> None:
    store = _store(make_record("edited", at(10), at(12)), make_record("c", at(10), at(11)))
    result = resolve_overlap(store, "edited", "c")
    assert _intervals(result) == [(at(11), at(12))]


def test_unknown_ids_are_a_no_op() -> None:
    store = _store(make_record("edited", at(10), at(12)))
    assert resolve_overlap(store, "edited", "missing") is None
    assert resolve_overlap(store, "missing", "edited") is None
    assert store.get_record("edited") is not None


def test_non_overlapping_pair_is_left_alone() -> None:
    store = _store(make_record("edited", at(10), at(11)), make_record("c", at(11), at(12)))
    result = resolve_overlap(store, "edited", "c")
    assert [r.id for r in result] == ["edited"]
    assert len(store.records()) == 2


def test_sub_second_fragments_are_discarded() -> None:
    edited = make_record("edited", at(10), at(12))
    conflicting = make_record("c", at(10), at(11, 59, 59).replace(microsecond=600000))
    fragments = split_around(edited, conflicting)
    assert fragments == []


def test_resolve_all_conflicts_loops_until_clean() -> None:
    store = _store(
        make_record("edited", at(8), at(13)),
        make_record("a", at(9), at(10)),
        make_record("b", at(11), at(12)),
        make_record("c", at(12, 30), at(14)),
    )
    survivors = resolve_all_conflicts(store, "edited")

    assert _intervals(survivors) == [
        (at(8), at(9)),
        (at(10), at(11)),
        (at(12), at(12, 30)),
    ]
    for record in survivors:
        assert detect_conflicts(
            store.records(), record.start_time, record.end_time, exclude_id=record.id
        ) == []


def test_resolve_all_conflicts_unknown_record() -> None:
    assert resolve_all_conflicts(_store(), "missing") is None


def test_record_is_not_resolved_against_itself() -> None:
    store = _store(make_record("edited", at(10), at(12)))
    result = resolve_overlap(store, "edited", "edited")
    assert [r.id for r in result] == ["edited"]
    assert _intervals(store.records()) == [(at(10), at(12))]
