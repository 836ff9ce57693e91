"""JSON export and import of records and tags."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .models import (
    IntervalError,
    Record,
    Tag,
    as_local_naive,
    new_id,
    validate_interval,
)
from .normalization import normalize_color, tag_key
from .store import RecordStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"


class ImportFormatError(ValueError):
    """Raised when an import document cannot be parsed."""


class TagPayload(BaseModel):
    id: str
    name: str
    color: str = "#7dd3fc"
    is_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("is_excluded", "isExcluded")
    )

    model_config = ConfigDict(populate_by_name=True)


class RecordPayload(BaseModel):
    id: str
    description: str = ""
    tag_ids: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("tag_ids", "tags")
    )
    start_time: datetime = Field(validation_alias=AliasChoices("start_time", "startTime"))
    end_time: datetime = Field(validation_alias=AliasChoices("end_time", "endTime"))
    duration: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class DateRange(BaseModel):
    start: date
    end: date


class ExportDocument(BaseModel):
    version: str
    export_time: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("export_time", "exportTime")
    )
    date_range: Optional[DateRange] = Field(
        default=None, validation_alias=AliasChoices("date_range", "dateRange")
    )
    tags: list[TagPayload]
    records: list[RecordPayload]

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True, slots=True)
class ImportPreview:
    document: ExportDocument
    record_count: int
    tag_count: int
    date_range: Optional[DateRange]


@dataclass(frozen=True, slots=True)
class ImportResult:
    added_records: int
    added_tags: int
    skipped_records: int = 0


def build_export(
    store: RecordStore, first_day: date, last_day: date, now: Optional[datetime] = None
) -> ExportDocument:
    return ExportDocument(
        version=EXPORT_VERSION,
        export_time=now or datetime.now(),
        date_range=DateRange(start=first_day, end=last_day),
        tags=[
            TagPayload(id=tag.id, name=tag.name, color=tag.color, is_excluded=tag.is_excluded)
            for tag in store.tags()
        ],
        records=[
            RecordPayload(
                id=record.id,
                description=record.description,
                tag_ids=list(record.tag_ids),
                start_time=record.start_time,
                end_time=record.end_time,
                duration=record.duration,
            )
            for record in store.records_between(first_day, last_day)
        ],
    )


def export_json(
    store: RecordStore, first_day: date, last_day: date, now: Optional[datetime] = None
) -> str:
    document = build_export(store, first_day, last_day, now=now)
    return json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False)


def export_filename(first_day: date, last_day: date) -> str:
    return f"time-records-{first_day:%Y%m%d}-to-{last_day:%Y%m%d}.json"


def parse_import(text: str) -> ImportPreview:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportFormatError(f"Invalid JSON: {exc.msg}") from exc
    return parse_document(raw)


def parse_document(raw: object) -> ImportPreview:
    if not isinstance(raw, dict):
        raise ImportFormatError("Import document must be a JSON object")
    try:
        document = ExportDocument.model_validate(raw)
    except ValidationError as exc:
        raise ImportFormatError(f"Invalid import document: {exc.error_count()} error(s)") from exc
    return ImportPreview(
        document=document,
        record_count=len(document.records),
        tag_count=len(document.tags),
        date_range=document.date_range,
    )


def _to_record(payload: RecordPayload, tag_ids: list[str]) -> Optional[Record]:
    start = as_local_naive(payload.start_time)
    end = as_local_naive(payload.end_time)
    try:
        validate_interval(start, end)
    except IntervalError:
        logger.warning("Skipping imported record %s with invalid interval.", payload.id)
        return None
    return Record(
        id=payload.id,
        description=payload.description,
        tag_ids=tuple(tag_ids),
        start_time=start,
        end_time=end,
    )


def _to_tag(payload: TagPayload, tag_id: Optional[str] = None) -> Tag:
    try:
        color = normalize_color(payload.color)
    except ValueError:
        logger.warning("Tag %s has invalid color %r; using default.", payload.name, payload.color)
        color = normalize_color(None)
    return Tag(
        id=tag_id or payload.id,
        name=payload.name.strip(),
        color=color,
        is_excluded=payload.is_excluded,
    )


def merge_import(store: RecordStore, document: ExportDocument) -> ImportResult:
    """Merge a document into the store.

    Tags are matched by case-insensitive name and imported records have their
    tag ids rewritten to the matching local tags. An imported tag whose id is
    taken by a differently named local tag gets a fresh id, so existing tags
    are never changed. Records whose id is already present are skipped.
    """
    tags_by_key = {tag_key(tag.name): tag for tag in store.tags()}
    tag_id_mapping: dict[str, str] = {}
    added_tags = 0
    for payload in document.tags:
        key = tag_key(payload.name)
        existing = tags_by_key.get(key)
        if existing is not None:
            tag_id_mapping[payload.id] = existing.id
            continue
        tag_id = payload.id
        if store.get_tag(tag_id) is not None:
            tag_id = new_id()
            logger.info(
                "Imported tag %s reuses id %s; assigned %s.", payload.name, payload.id, tag_id
            )
        tag = _to_tag(payload, tag_id)
        store.insert_tag(tag)
        tags_by_key[key] = tag
        tag_id_mapping[payload.id] = tag.id
        added_tags += 1

    added_records = 0
    skipped = 0
    for payload in document.records:
        if store.get_record(payload.id) is not None:
            continue
        record = _to_record(
            payload, [tag_id_mapping.get(tag_id, tag_id) for tag_id in payload.tag_ids]
        )
        if record is None:
            skipped += 1
            continue
        store.insert_record(record)
        added_records += 1

    logger.info("Merged import: %d records, %d tags added.", added_records, added_tags)
    return ImportResult(added_records=added_records, added_tags=added_tags, skipped_records=skipped)


def replace_import(store: RecordStore, document: ExportDocument) -> ImportResult:
    """Drop every record and tag and load the document's contents instead.

    Tags repeating an earlier name (ignoring case) are folded into the first
    one and records pointing at them are relabelled.
    """
    tags_by_key: dict[str, Tag] = {}
    tag_id_mapping: dict[str, str] = {}
    for payload in document.tags:
        key = tag_key(payload.name)
        kept = tags_by_key.get(key)
        if kept is None:
            kept = tags_by_key[key] = _to_tag(payload)
        else:
            logger.warning("Dropping duplicate tag %s (%s).", payload.name, payload.id)
        tag_id_mapping[payload.id] = kept.id
    tags = list(tags_by_key.values())

    records = []
    skipped = 0
    for payload in document.records:
        record = _to_record(
            payload, [tag_id_mapping.get(tag_id, tag_id) for tag_id in payload.tag_ids]
        )
        if record is None:
            skipped += 1
            continue
        records.append(record)

    store.replace_all(records, tags)
    logger.info("Replaced store contents: %d records, %d tags.", len(records), len(tags))
    return ImportResult(
        added_records=len(store.records()),
        added_tags=len(store.tags()),
        skipped_records=skipped,
    )
