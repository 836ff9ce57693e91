from __future__ import annotations

from datetime import datetime

import pytest

from tag_timeline.models import Record, Tag
from tag_timeline.store import RecordStore

DAY = datetime(2026, 3, 10)


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return DAY.replace(hour=hour, minute=minute, second=second)


def make_record(
    record_id: str,
    start: datetime,
    end: datetime,
    tag_ids: tuple[str, ...] = (),
    description: str = "",
) -> Record:
    return Record(
        id=record_id,
        description=description,
        tag_ids=tag_ids,
        start_time=start,
        end_time=end,
    )


@pytest.fixture
def store() -> RecordStore:
    return RecordStore(
        tags=[
            Tag(id="work", name="work", color="#7dd3fc"),
            Tag(id="game", name="Game", color="#fb923c", is_excluded=True),
        ]
    )
