"""Detect records that overlap a candidate interval."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .models import Conflict, Record, duration_seconds, intervals_overlap


def detect_conflicts(
    records: Iterable[Record],
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_id: Optional[str] = None,
) -> list[Conflict]:
    """Return every record overlapping ``[candidate_start, candidate_end)``.

    The record being edited is passed as ``exclude_id`` so it never conflicts
    with itself. Results are ordered by the other record's start time, then
    id, so repeated calls over the same snapshot agree.
    """
    conflicts: list[Conflict] = []
    for record in records:
        if record.id == exclude_id:
            continue
        if not intervals_overlap(
            candidate_start, candidate_end, record.start_time, record.end_time
        ):
            continue
        overlap_start = max(candidate_start, record.start_time)
        overlap_end = min(candidate_end, record.end_time)
        conflicts.append(
            Conflict(
                other_record=record,
                overlap_start=overlap_start,
                overlap_end=overlap_end,
                overlap_duration=duration_seconds(overlap_start, overlap_end),
            )
        )
    conflicts.sort(key=lambda c: (c.other_record.start_time, c.other_record.id))
    return conflicts

