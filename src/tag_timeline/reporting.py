"""Aggregation of record durations and simple console reporting."""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from .models import Record, Tag, round_half_up
from .normalization import UNKNOWN_TAG_NAME
from .store import RecordStore


@dataclass(frozen=True, slots=True)
class TagShare:
    tag_id: str
    duration: int
    percent: float
    tag: Optional[Tag] = None

    @property
    def name(self) -> str:
        return self.tag.name if self.tag else UNKNOWN_TAG_NAME


@dataclass(slots=True)
class Aggregate:
    """Totals for a set of records after tag exclusion."""

    total: int
    by_tag: list[TagShare]
    durations: dict[str, int] = field(default_factory=dict)
    excluded_tag_ids: frozenset[str] = frozenset()

    def duration_for(self, tag_id: str) -> int:
        """Time carried by a tag, including tags left out of the totals."""
        return self.durations.get(tag_id, 0)


@dataclass(frozen=True, slots=True)
class DayTotal:
    day: date
    duration: int
    record_count: int


@dataclass(slots=True)
class PeriodReport:
    aggregate: Aggregate
    days: list[DayTotal]

    @property
    def active_days(self) -> int:
        return sum(1 for day in self.days if day.duration > 0)

    @property
    def average(self) -> int:
        if not self.active_days:
            return 0
        return round_half_up(self.aggregate.total / self.active_days)


def aggregate(
    records: Iterable[Record],
    excluded_tag_ids: Iterable[str] = (),
    tags: Iterable[Tag] = (),
) -> Aggregate:
    """Sum record durations, leaving out records carrying an excluded tag.

    Tags flagged ``is_excluded`` are always part of the exclusion set. A record
    is counted in the total only if none of its tags is excluded, but every tag
    it carries still accumulates the record's duration.
    """
    tag_lookup = {tag.id: tag for tag in tags}
    excluded = frozenset(excluded_tag_ids) | {
        tag.id for tag in tag_lookup.values() if tag.is_excluded
    }

    total = 0
    durations: defaultdict[str, int] = defaultdict(int)
    for record in records:
        seconds = record.duration
        if not excluded.intersection(record.tag_ids):
            total += seconds
        for tag_id in record.tag_ids:
            durations[tag_id] += seconds

    by_tag = [
        TagShare(
            tag_id=tag_id,
            duration=seconds,
            percent=(seconds / total * 100) if total > 0 else 0.0,
            tag=tag_lookup.get(tag_id),
        )
        for tag_id, seconds in durations.items()
        if tag_id not in excluded
    ]
    by_tag.sort(key=lambda share: (-share.duration, share.tag_id))
    return Aggregate(
        total=total,
        by_tag=by_tag,
        durations=dict(durations),
        excluded_tag_ids=excluded,
    )


def week_days(day: date) -> list[date]:
    monday = day - timedelta(days=day.weekday())
    return [monday + timedelta(days=offset) for offset in range(7)]


def month_days(year: int, month: int) -> list[date]:
    last = calendar.monthrange(year, month)[1]
    return [date(year, month, number) for number in range(1, last + 1)]


def daily_totals(records: Iterable[Record], days: Sequence[date]) -> list[DayTotal]:
    """Raw time per day, bucketed by each record's start date."""
    seconds: defaultdict[date, int] = defaultdict(int)
    counts: defaultdict[date, int] = defaultdict(int)
    for record in records:
        day = record.start_time.date()
        seconds[day] += record.duration
        counts[day] += 1
    return [DayTotal(day=day, duration=seconds[day], record_count=counts[day]) for day in days]


def period_report(
    records: Iterable[Record],
    days: Sequence[date],
    excluded_tag_ids: Iterable[str] = (),
    tags: Iterable[Tag] = (),
) -> PeriodReport:
    if days:
        first, last = min(days), max(days)
        in_range = [r for r in records if first <= r.start_time.date() <= last]
    else:
        in_range = []
    return PeriodReport(
        aggregate=aggregate(in_range, excluded_tag_ids, tags),
        days=daily_totals(in_range, days),
    )


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def print_daily_summary(
        self, day: date, excluded_tag_ids: Iterable[str] = ()
    ) -> None:
        records = self.store.records_for_day(day)
        if not records:
            print("No records for the selected day.")
            return

        result = aggregate(records, excluded_tag_ids, self.store.tags())
        raw_total = sum(record.duration for record in records)

        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        print(f"Counted time:  {format_duration(result.total)}")
        print(f"Excluded time: {format_duration(raw_total - result.total)}")
        print()

        if result.by_tag:
            print("By tag:")
            for share in result.by_tag:
                print(
                    f"  {share.name:<20} {format_duration(share.duration)}"
                    f" {share.percent:5.1f}%"
                )

        print()
        print("Records:")
        for record in records:
            label = record.description or "(no description)"
            print(
                f"  {record.start_time:%H:%M}-{record.end_time:%H:%M}"
                f" {label[:45]:<45} {format_short(record.duration)}"
            )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_short(seconds: float) -> str:
    if not seconds or seconds < 0:
        return "0m"
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
