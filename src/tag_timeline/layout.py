"""Lane layout for the day timeline.

Records are clipped to a half-day window, assigned to columns so concurrent
records sit side by side, and given pixel/percent geometry for rendering.
Nothing here touches the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from .config import TimelineSettings
from .models import ACTIVE_RECORD_ID, Record, intervals_overlap


@dataclass(slots=True)
class PositionedBlock:
    record: Record
    clipped_start: datetime
    clipped_end: datetime
    column: int = 0
    total_columns: int = 1
    top: float = 0.0
    height: float = 0.0
    left: float = 0.0
    width: float = 100.0

    @property
    def is_active(self) -> bool:
        return self.record.id == ACTIVE_RECORD_ID

    @property
    def is_overlapping(self) -> bool:
        return self.total_columns > 1


@dataclass(slots=True)
class HalfDay:
    window_start: datetime
    window_end: datetime
    blocks: list[PositionedBlock] = field(default_factory=list)
    now_offset: Optional[float] = None


@dataclass(slots=True)
class DayTimeline:
    day: date
    pixels_per_hour: float
    am: HalfDay
    pm: HalfDay

    @property
    def half_height(self) -> float:
        return 12 * self.pixels_per_hour


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60.0


def _overlaps(a: PositionedBlock, b: PositionedBlock) -> bool:
    return intervals_overlap(a.clipped_start, a.clipped_end, b.clipped_start, b.clipped_end)


def layout(
    records: Iterable[Record],
    window_start: datetime,
    window_end: datetime,
    pixels_per_hour: float,
    min_block_height: float = 20.0,
) -> list[PositionedBlock]:
    """Position the records that fall inside ``[window_start, window_end)``.

    Columns are assigned first-fit in start order: each record takes the
    smallest column not used by an already placed record it overlaps.
    ``total_columns`` counts every record overlapping it, itself included.
    """
    blocks: list[PositionedBlock] = []
    for record in records:
        clipped_start = max(record.start_time, window_start)
        clipped_end = min(record.end_time, window_end)
        if clipped_end <= clipped_start:
            continue
        blocks.append(PositionedBlock(record, clipped_start, clipped_end))

    blocks.sort(key=lambda block: (block.clipped_start, block.record.id))

    placed: set[int] = set()
    for index, block in enumerate(blocks):
        used = {
            other.column
            for other_index, other in enumerate(blocks)
            if other_index in placed and _overlaps(block, other)
        }
        column = 0
        while column in used:
            column += 1
        block.column = column
        placed.add(index)

    for block in blocks:
        block.total_columns = sum(1 for other in blocks if _overlaps(block, other))
        block.width = 100.0 / block.total_columns
        block.left = block.column * block.width

        start_minutes = _minutes(block.clipped_start - window_start)
        length_minutes = _minutes(block.clipped_end - block.clipped_start)
        block.top = start_minutes / 60 * pixels_per_hour
        block.height = max(length_minutes / 60 * pixels_per_hour, min_block_height)

    return blocks


def layout_day(
    records: Iterable[Record],
    day: date,
    settings: Optional[TimelineSettings] = None,
    active: Optional[Record] = None,
    now: Optional[datetime] = None,
) -> DayTimeline:
    """Lay out a day as two half-day columns (00:00-12:00 and 12:00-24:00).

    ``active`` is the synthetic in-progress record; ``now`` places the
    current-time marker when it falls on ``day``.
    """
    settings = settings or TimelineSettings()
    day_start = datetime.combine(day, datetime.min.time())
    noon = day_start + timedelta(hours=12)
    day_end = day_start + timedelta(days=1)

    items = list(records)
    if active is not None:
        items.insert(0, active)

    halves = []
    for window_start, window_end in ((day_start, noon), (noon, day_end)):
        half = HalfDay(
            window_start=window_start,
            window_end=window_end,
            blocks=layout(
                items,
                window_start,
                window_end,
                settings.pixels_per_hour,
                settings.min_block_height,
            ),
        )
        if now is not None and window_start <= now < window_end:
            half.now_offset = (
                _minutes(now - window_start) / 60 * settings.pixels_per_hour
            )
        halves.append(half)

    return DayTimeline(
        day=day,
        pixels_per_hour=settings.pixels_per_hour,
        am=halves[0],
        pm=halves[1],
    )
