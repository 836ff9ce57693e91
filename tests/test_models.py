from __future__ import annotations

from datetime import timedelta, timezone

import pytest

from conftest import at, make_record
from tag_timeline.models import (
    ACTIVE_RECORD_ID,
    IntervalError,
    TimerState,
    as_local_naive,
    duration_seconds,
    intervals_overlap,
    validate_interval,
)


def test_duration_rounds_half_up() -> None:
    start = at(9)
    assert duration_seconds(start, start + timedelta(milliseconds=1500)) == 2
    assert duration_seconds(start, start + timedelta(milliseconds=1499)) == 1
    assert duration_seconds(start, at(10)) == 3600


def test_record_duration_follows_interval() -> None:
    record = make_record("a", at(9), at(10))
    assert record.duration == 3600
    record.end_time = at(9, 30)
    assert record.duration == 1800


def test_record_drops_duplicate_tags_and_keeps_order() -> None:
    record = make_record("a", at(9), at(10), tag_ids=("b", "a", "b", ""))
    assert record.tag_ids == ("b", "a")
    assert record.primary_tag_id == "b"


def test_with_interval_gets_new_identity() -> None:
    record = make_record("a", at(9), at(12), tag_ids=("work",), description="focus")
    fragment = record.with_interval(at(9), at(10))
    assert fragment.id != record.id
    assert fragment.description == "focus"
    assert fragment.tag_ids == ("work",)
    assert fragment.duration == 3600


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((at(9), at(10)), (at(9, 30), at(11)), True),
        ((at(9), at(12)), (at(10), at(11)), True),
        ((at(10), at(11)), (at(11), at(12)), False),
        ((at(9), at(10)), (at(13), at(14)), False),
    ],
)
def test_overlap_is_symmetric(a, b, expected) -> None:
    assert intervals_overlap(*a, *b) is expected
    assert intervals_overlap(*b, *a) is expected


def test_interval_overlaps_itself() -> None:
    assert intervals_overlap(at(9), at(10), at(9), at(10))


def test_zero_length_interval_never_overlaps() -> None:
    assert not intervals_overlap(at(10), at(10), at(9), at(11))
    assert not intervals_overlap(at(9), at(10), at(10), at(10))


def test_validate_interval_rejects_non_positive_length() -> None:
    with pytest.raises(IntervalError):
        validate_interval(at(10), at(10))
    with pytest.raises(IntervalError):
        validate_interval(at(11), at(10))
    validate_interval(at(10), at(11))


def test_as_local_naive_strips_timezone() -> None:
    naive = at(10)
    assert as_local_naive(naive) is naive
    aware = naive.replace(tzinfo=timezone.utc)
    assert as_local_naive(aware).tzinfo is None


def test_timer_state_builds_active_record() -> None:
    timer = TimerState(start_time=at(9), description="writing", tag_ids=("work",))
    record = timer.to_record(at(9, 45))
    assert record.id == ACTIVE_RECORD_ID
    assert record.duration == 45 * 60
    assert record.tag_ids == ("work",)
