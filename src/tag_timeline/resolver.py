"""Split or trim an edited record so it stops overlapping another record."""

from __future__ import annotations

import logging
from typing import Optional

from .conflicts import detect_conflicts
from .models import Record, intervals_overlap
from .store import RecordStore

logger = logging.getLogger(__name__)


def split_around(edited: Record, conflicting: Record) -> list[Record]:
    """Fragments of ``edited`` left after removing ``conflicting``'s interval.

    Zero-width fragments from boundary-aligned conflicts are dropped.
    """
    s, e = edited.start_time, edited.end_time
    cs, ce = conflicting.start_time, conflicting.end_time

    fragments: list[Record] = []
    if cs > s and ce < e:
        # Conflict sits inside the edited interval.
        fragments.append(edited.with_interval(s, cs))
        fragments.append(edited.with_interval(ce, e))
    elif cs <= s and s < ce < e:
        fragments.append(edited.with_interval(ce, e))
    elif s < cs < e and ce >= e:
        fragments.append(edited.with_interval(s, cs))
    # Anything else covers the edited interval completely.

    return [fragment for fragment in fragments if fragment.duration > 0]


def resolve_overlap(
    store: RecordStore, edited_id: str, conflict_id: str
) -> Optional[list[Record]]:
    """Replace the edited record with the parts that do not overlap the conflict.

    Returns the replacement records (empty when the edited record was fully
    covered and deleted), or None if either id is unknown. Records that do
    not actually overlap are left alone. The conflicting record is never
    modified.
    """
    edited = store.get_record(edited_id)
    conflicting = store.get_record(conflict_id)
    if edited_id == conflict_id:
        logger.info("Record %s cannot conflict with itself.", edited_id)
        return None if edited is None else [edited]
    if edited is None or conflicting is None:
        logger.info(
            "Cannot resolve overlap: record %s or %s not found.", edited_id, conflict_id
        )
        return None

    if not intervals_overlap(
        edited.start_time, edited.end_time, conflicting.start_time, conflicting.end_time
    ):
        logger.info("Records %s and %s do not overlap; nothing to resolve.", edited_id, conflict_id)
        return [edited]

    replacements = split_around(edited, conflicting)
    store.replace_record(edited_id, replacements)
    logger.debug(
        "Resolved overlap of %s against %s into %d record(s).",
        edited_id,
        conflict_id,
        len(replacements),
    )
    return replacements


def resolve_all_conflicts(store: RecordStore, record_id: str) -> Optional[list[Record]]:
    """Resolve every overlap of a record, one conflict at a time.

    Each resolution changes the record set, so conflicts are detected again
    after every step and for every fragment produced along the way.
    """
    if store.get_record(record_id) is None:
        logger.info("Cannot resolve conflicts: record %s not found.", record_id)
        return None

    pending = [record_id]
    survivors: list[Record] = []
    while pending:
        current_id = pending.pop()
        current = store.get_record(current_id)
        if current is None:
            continue
        conflicts = detect_conflicts(
            store.records(), current.start_time, current.end_time, exclude_id=current_id
        )
        if not conflicts:
            survivors.append(current)
            continue
        replacements = resolve_overlap(store, current_id, conflicts[0].other_record.id)
        pending.extend(record.id for record in replacements or ())

    survivors.sort(key=lambda r: (r.start_time, r.id))
    return survivors
