"""In-memory record and tag collections with the edit operations on them."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from .models import (
    Record,
    Tag,
    TimerState,
    new_id,
    unique_tag_ids,
    validate_interval,
)
from .normalization import normalize_color, normalize_tag_name, tag_key

logger = logging.getLogger(__name__)

DEFAULT_TAGS: tuple[tuple[str, str], ...] = (
    ("work", "#7dd3fc"),
    ("learn", "#a78bfa"),
    ("rest", "#34d399"),
    ("meeting", "#fbbf24"),
    ("coding", "#fb923c"),
)

_UNSET = object()


class DuplicateTagError(ValueError):
    """Raised when a tag name is already taken (case-insensitively)."""


class TimerAlreadyRunning(RuntimeError):
    """Raised when a timer is started while another one is active."""


def default_tags() -> list[Tag]:
    return [Tag(id=new_id(), name=name, color=color) for name, color in DEFAULT_TAGS]


def _sort_key(record: Record) -> tuple[datetime, str]:
    return (record.start_time, record.id)


class RecordStore:
    """Owns the record and tag collections plus the running timer.

    Callers load a store from persistence, apply edits, and save it back as a
    whole; the store itself performs no I/O.
    """

    def __init__(
        self,
        records: Iterable[Record] = (),
        tags: Iterable[Tag] = (),
        timer: Optional[TimerState] = None,
    ) -> None:
        self._records: dict[str, Record] = {}
        self._tags: dict[str, Tag] = {}
        for record in records:
            self._records[record.id] = record
        for tag in tags:
            self._tags[tag.id] = tag
        self.timer = timer

    @classmethod
    def with_default_tags(cls) -> "RecordStore":
        return cls(tags=default_tags())

    # Records

    def records(self) -> list[Record]:
        return sorted(self._records.values(), key=_sort_key)

    def get_record(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    def add_record(
        self,
        start_time: datetime,
        end_time: datetime,
        description: str = "",
        tag_ids: Sequence[str] = (),
    ) -> Record:
        validate_interval(start_time, end_time)
        record = Record(
            id=new_id(),
            description=description.strip(),
            tag_ids=tuple(tag_ids),
            start_time=start_time,
            end_time=end_time,
        )
        self._records[record.id] = record
        return record

    def insert_record(self, record: Record) -> bool:
        """Insert an already identified record; returns False on id collision."""
        if record.id in self._records:
            return False
        validate_interval(record.start_time, record.end_time)
        self._records[record.id] = record
        return True

    def update_record(
        self,
        record_id: str,
        *,
        description: object = _UNSET,
        tag_ids: object = _UNSET,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> Optional[Record]:
        """Update a record in place; returns None when the id is unknown."""
        record = self._records.get(record_id)
        if record is None:
            return None
        new_start = start_time if start_time is not None else record.start_time
        new_end = end_time if end_time is not None else record.end_time
        validate_interval(new_start, new_end)

        record.start_time = new_start
        record.end_time = new_end
        if description is not _UNSET:
            record.description = str(description or "").strip()
        if tag_ids is not _UNSET:
            record.tag_ids = unique_tag_ids(tag_ids or ())  # type: ignore[arg-type]
        return record

    def delete_record(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def replace_record(self, record_id: str, replacements: Iterable[Record]) -> bool:
        """Swap one record for a replacement set in a single step."""
        if record_id not in self._records:
            return False
        fresh = list(replacements)
        for record in fresh:
            validate_interval(record.start_time, record.end_time)
        del self._records[record_id]
        for record in fresh:
            self._records[record.id] = record
        return True

    def records_between(self, first_day: date, last_day: date) -> list[Record]:
        """Records whose start falls on a day in the inclusive range."""
        start = datetime.combine(first_day, datetime.min.time())
        end = datetime.combine(last_day, datetime.min.time()) + timedelta(days=1)
        return [r for r in self.records() if start <= r.start_time < end]

    def records_for_day(self, day: date) -> list[Record]:
        return self.records_between(day, day)

    def records_for_week(self, day: date) -> list[Record]:
        monday = day - timedelta(days=day.weekday())
        return self.records_between(monday, monday + timedelta(days=6))

    def records_for_month(self, year: int, month: int) -> list[Record]:
        last = calendar.monthrange(year, month)[1]
        return self.records_between(date(year, month, 1), date(year, month, last))

    # Tags

    def tags(self) -> list[Tag]:
        return list(self._tags.values())

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return self._tags.get(tag_id)

    def tag_by_name(self, name: str) -> Optional[Tag]:
        key = tag_key(name)
        for tag in self._tags.values():
            if tag_key(tag.name) == key:
                return tag
        return None

    def add_tag(self, name: str, color: Optional[str] = None, is_excluded: bool = False) -> Tag:
        cleaned = normalize_tag_name(name)
        if not cleaned:
            raise ValueError("tag name is required")
        if self.tag_by_name(cleaned) is not None:
            raise DuplicateTagError(f"A tag named {cleaned!r} already exists")
        tag = Tag(
            id=new_id(),
            name=cleaned,
            color=normalize_color(color),
            is_excluded=is_excluded,
        )
        self._tags[tag.id] = tag
        return tag

    def insert_tag(self, tag: Tag) -> None:
        self._tags[tag.id] = tag

    def update_tag(
        self,
        tag_id: str,
        *,
        name: Optional[str] = None,
        color: Optional[str] = None,
        is_excluded: Optional[bool] = None,
    ) -> Optional[Tag]:
        tag = self._tags.get(tag_id)
        if tag is None:
            return None
        if name is not None:
            cleaned = normalize_tag_name(name)
            if not cleaned:
                raise ValueError("tag name is required")
            existing = self.tag_by_name(cleaned)
            if existing is not None and existing.id != tag_id:
                raise DuplicateTagError(f"A tag named {cleaned!r} already exists")
            tag.name = cleaned
        if color is not None:
            tag.color = normalize_color(color)
        if is_excluded is not None:
            tag.is_excluded = is_excluded
        return tag

    def delete_tag(self, tag_id: str) -> bool:
        # Records keep the dangling id; it renders as an unknown tag.
        return self._tags.pop(tag_id, None) is not None

    def excluded_tag_ids(self) -> set[str]:
        return {tag.id for tag in self._tags.values() if tag.is_excluded}

    # Timer

    def start_timer(
        self,
        now: datetime,
        description: str = "",
        tag_ids: Sequence[str] = (),
    ) -> TimerState:
        if self.timer is not None:
            raise TimerAlreadyRunning("A timer is already running")
        self.timer = TimerState(
            start_time=now,
            description=description.strip(),
            tag_ids=unique_tag_ids(tag_ids),
        )
        logger.info("Timer started at %s", now.isoformat())
        return self.timer

    def stop_timer(self, now: datetime) -> Optional[Record]:
        """Stop the running timer and keep its time as a record."""
        timer = self.timer
        if timer is None:
            return None
        self.timer = None
        candidate = timer.to_record(now)
        if candidate.duration <= 0:
            logger.info("Timer stopped without elapsed time; nothing recorded.")
            return None
        return self.add_record(
            timer.start_time,
            now,
            description=timer.description,
            tag_ids=timer.tag_ids,
        )

    def in_progress_record(self, now: datetime) -> Optional[Record]:
        if self.timer is None or now <= self.timer.start_time:
            return None
        return self.timer.to_record(now)

    def replace_all(self, records: Iterable[Record], tags: Iterable[Tag]) -> None:
        """Swap both collections wholesale; the running timer is kept."""
        self._records = {record.id: record for record in records}
        self._tags = {tag.id: tag for tag in tags}

    def clear(self) -> None:
        self._records.clear()
        self._tags = {tag.id: tag for tag in default_tags()}
        self.timer = None
