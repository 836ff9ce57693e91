"""Domain models for tagged time records."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional


ACTIVE_RECORD_ID = "active-record"


class IntervalError(ValueError):
    """Raised when an interval does not end strictly after it starts."""


def new_id() -> str:
    return str(uuid.uuid4())


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def duration_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants, rounded half up."""
    return round_half_up((end - start).total_seconds())


def as_local_naive(value: datetime) -> datetime:
    """Drop timezone info, converting aware values to local wall-clock time."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def validate_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise IntervalError(
            f"end time {end.isoformat()} must be after start time {start.isoformat()}"
        )


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open overlap test; touching or zero-length intervals do not overlap."""
    if a_end <= a_start or b_end <= b_start:
        return False
    return a_start < b_end and a_end > b_start


def unique_tag_ids(tag_ids: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for tag_id in tag_ids:
        if tag_id:
            seen.setdefault(tag_id, None)
    return tuple(seen)


@dataclass(slots=True)
class Record:
    """A contiguous block of time with a description and tags."""

    id: str
    description: str
    tag_ids: tuple[str, ...]
    start_time: datetime
    end_time: datetime

    def __post_init__(self) -> None:
        self.tag_ids = unique_tag_ids(self.tag_ids)

    @property
    def duration(self) -> int:
        return duration_seconds(self.start_time, self.end_time)

    @property
    def primary_tag_id(self) -> Optional[str]:
        return self.tag_ids[0] if self.tag_ids else None

    def with_interval(self, start: datetime, end: datetime) -> "Record":
        """Return a copy over a new interval with a fresh identity."""
        return Record(
            id=new_id(),
            description=self.description,
            tag_ids=self.tag_ids,
            start_time=start,
            end_time=end,
        )


@dataclass(slots=True)
class Tag:
    id: str
    name: str
    color: str
    is_excluded: bool = False


@dataclass(frozen=True, slots=True)
class Conflict:
    """Overlap between a candidate interval and an existing record."""

    other_record: Record
    overlap_start: datetime
    overlap_end: datetime
    overlap_duration: int


@dataclass(slots=True)
class TimerState:
    """The one running timer, persisted so it survives restarts."""

    start_time: datetime
    description: str = ""
    tag_ids: tuple[str, ...] = field(default_factory=tuple)

    def to_record(self, now: datetime) -> Record:
        return Record(
            id=ACTIVE_RECORD_ID,
            description=self.description,
            tag_ids=self.tag_ids,
            start_time=self.start_time,
            end_time=now,
        )
