"""FastAPI application that exposes a local web UI and API for the timeline."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict

from .config import TimelineSettings
from .conflicts import detect_conflicts
from .db import database_connection, load_store, save_store
from .layout import HalfDay, layout_day
from .models import Conflict, IntervalError, Record, Tag, as_local_naive, validate_interval
from .normalization import contrast_color
from .paths import get_db_path
from .reporting import month_days, period_report, week_days
from .resolver import resolve_all_conflicts, resolve_overlap
from .store import DuplicateTagError, RecordStore, TimerAlreadyRunning
from .transfer import (
    ImportFormatError,
    build_export,
    export_filename,
    merge_import,
    parse_document,
    replace_import,
)

logger = logging.getLogger(__name__)


class StoreSession:
    """Serialize load, modify and save cycles against the database file."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def read(self) -> Iterator[RecordStore]:
        with self._lock, database_connection(self._db_path) as conn:
            yield load_store(conn)

    @contextmanager
    def write(self) -> Iterator[RecordStore]:
        with self._lock, database_connection(self._db_path) as conn:
            store = load_store(conn)
            yield store
            save_store(conn, store)


class RecordCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    description: str = ""
    tag_ids: List[str] = []

    model_config = ConfigDict(extra="forbid")


class RecordUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    description: Optional[str] = None
    tag_ids: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")


class ResolvePayload(BaseModel):
    conflict_id: str

    model_config = ConfigDict(extra="forbid")


class TagCreate(BaseModel):
    name: str
    color: Optional[str] = None
    is_excluded: bool = False

    model_config = ConfigDict(extra="forbid")


class TagUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    is_excluded: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class TimerStart(BaseModel):
    description: str = ""
    tag_ids: List[str] = []

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    session = StoreSession(Path(db_path or get_db_path()))
    now = clock or datetime.now

    app = FastAPI(title="Tag Timeline", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = session.db_path
    app.state.session = session

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving records from %s", session.db_path)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        with request.app.state.session.read() as store:
            return {
                "database_path": str(request.app.state.db_path),
                "timer_running": store.timer is not None,
                "record_count": len(store.records()),
                "tag_count": len(store.tags()),
            }

    # Tags

    @app.get("/api/tags")
    def list_tags(request: Request) -> Dict[str, Any]:
        with request.app.state.session.read() as store:
            return {"tags": [_tag_payload(tag) for tag in store.tags()]}

    @app.post("/api/tags", status_code=201)
    def create_tag(payload: TagCreate, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            try:
                tag = store.add_tag(payload.name, payload.color, payload.is_excluded)
            except DuplicateTagError as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            return _tag_payload(tag)

    @app.patch("/api/tags/{tag_id}")
    def update_tag(tag_id: str, payload: TagUpdate, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            try:
                tag = store.update_tag(tag_id, **payload.model_dump(exclude_unset=True))
            except DuplicateTagError as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            if tag is None:
                raise HTTPException(status_code=404, detail="Tag not found")
            return _tag_payload(tag)

    @app.delete("/api/tags/{tag_id}")
    def delete_tag(tag_id: str, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            if not store.delete_tag(tag_id):
                raise HTTPException(status_code=404, detail="Tag not found")
        return {"deleted": tag_id}

    # Records

    @app.get("/api/records")
    def list_records(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        with request.app.state.session.read() as store:
            records = store.records_for_day(target_day)
            active = _active_for_day(store, target_day, now())
        payload = [_record_payload(record) for record in records]
        if active is not None:
            payload.insert(0, _record_payload(active, is_active=True))
        return {"date": target_day.isoformat(), "records": payload}

    @app.post("/api/records", status_code=201)
    def create_record(payload: RecordCreate, request: Request) -> Dict[str, Any]:
        start, end = _validated_interval(payload.start_time, payload.end_time)
        with request.app.state.session.write() as store:
            record = store.add_record(start, end, payload.description, payload.tag_ids)
            conflicts = detect_conflicts(store.records(), start, end, exclude_id=record.id)
        return {
            "record": _record_payload(record),
            "conflicts": [_conflict_payload(conflict) for conflict in conflicts],
        }

    @app.patch("/api/records/{record_id}")
    def update_record(
        record_id: str, payload: RecordUpdate, request: Request
    ) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        for key in ("start_time", "end_time"):
            if updates.get(key) is not None:
                updates[key] = as_local_naive(updates[key])
        with request.app.state.session.write() as store:
            try:
                record = store.update_record(record_id, **updates)
            except IntervalError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            if record is None:
                raise HTTPException(status_code=404, detail="Record not found")
            conflicts = detect_conflicts(
                store.records(), record.start_time, record.end_time, exclude_id=record.id
            )
        return {
            "record": _record_payload(record),
            "conflicts": [_conflict_payload(conflict) for conflict in conflicts],
        }

    @app.delete("/api/records/{record_id}")
    def delete_record(record_id: str, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            if not store.delete_record(record_id):
                raise HTTPException(status_code=404, detail="Record not found")
        return {"deleted": record_id}

    @app.get("/api/conflicts")
    def conflicts(
        request: Request,
        start: datetime = Query(..., description="Candidate start time."),
        end: datetime = Query(..., description="Candidate end time."),
        exclude_id: Optional[str] = Query(
            default=None, description="Record being edited, never reported."
        ),
    ) -> Dict[str, Any]:
        start, end = _validated_interval(start, end)
        with request.app.state.session.read() as store:
            found = detect_conflicts(store.records(), start, end, exclude_id=exclude_id)
        return {"conflicts": [_conflict_payload(conflict) for conflict in found]}

    @app.post("/api/records/{record_id}/resolve")
    def resolve(record_id: str, payload: ResolvePayload, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            replacements = resolve_overlap(store, record_id, payload.conflict_id)
        if replacements is None:
            raise HTTPException(status_code=404, detail="Record not found")
        return {
            "deleted": not replacements,
            "records": [_record_payload(record) for record in replacements],
        }

    @app.post("/api/records/{record_id}/resolve-all")
    def resolve_all(record_id: str, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            survivors = resolve_all_conflicts(store, record_id)
        if survivors is None:
            raise HTTPException(status_code=404, detail="Record not found")
        return {
            "deleted": not survivors,
            "records": [_record_payload(record) for record in survivors],
        }

    # Reports

    @app.get("/api/reports/daily")
    def daily_report(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
        exclude: List[str] = Query(default=[], description="Tag ids left out of totals."),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        return _report(request, [target_day], exclude)

    @app.get("/api/reports/weekly")
    def weekly_report(
        request: Request,
        date: Optional[str] = Query(default=None, description="Any date in the week."),
        exclude: List[str] = Query(default=[], description="Tag ids left out of totals."),
    ) -> Dict[str, Any]:
        return _report(request, week_days(_parse_date(date)), exclude)

    @app.get("/api/reports/monthly")
    def monthly_report(
        request: Request,
        year: Optional[int] = Query(default=None, ge=1970, le=9999),
        month: Optional[int] = Query(default=None, ge=1, le=12),
        exclude: List[str] = Query(default=[], description="Tag ids left out of totals."),
    ) -> Dict[str, Any]:
        today = now().date()
        return _report(request, month_days(year or today.year, month or today.month), exclude)

    # Timeline

    @app.get("/api/timeline")
    def timeline(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
        zoom: float = Query(default=1.0, ge=0.5, le=4.0),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        current = now()
        with request.app.state.session.read() as store:
            records = store.records_for_day(target_day)
            active = _active_for_day(store, target_day, current)
            tags = {tag.id: tag for tag in store.tags()}
        day = layout_day(
            records,
            target_day,
            TimelineSettings.from_zoom(zoom),
            active=active,
            now=current,
        )
        return {
            "date": target_day.isoformat(),
            "pixels_per_hour": day.pixels_per_hour,
            "half_height": day.half_height,
            "am": _half_payload(day.am, tags),
            "pm": _half_payload(day.pm, tags),
        }

    # Timer

    @app.get("/api/timer")
    def timer_status(request: Request) -> Dict[str, Any]:
        current = now()
        with request.app.state.session.read() as store:
            active = store.in_progress_record(current)
            timer = store.timer
        if timer is None:
            return {"running": False}
        return {
            "running": True,
            "start_time": timer.start_time.isoformat(),
            "description": timer.description,
            "tag_ids": list(timer.tag_ids),
            "elapsed_seconds": active.duration if active else 0,
        }

    @app.post("/api/timer/start", status_code=201)
    def start_timer(payload: TimerStart, request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            try:
                timer = store.start_timer(now(), payload.description, payload.tag_ids)
            except TimerAlreadyRunning as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"running": True, "start_time": timer.start_time.isoformat()}

    @app.post("/api/timer/stop")
    def stop_timer(request: Request) -> Dict[str, Any]:
        with request.app.state.session.write() as store:
            was_running = store.timer is not None
            record = store.stop_timer(now())
        if not was_running:
            raise HTTPException(status_code=409, detail="No timer is running")
        return {"record": _record_payload(record) if record else None}

    # Import / export

    @app.get("/api/export")
    def export(
        request: Request,
        start: str = Query(..., description="First day in YYYY-MM-DD format."),
        end: str = Query(..., description="Last day in YYYY-MM-DD format."),
    ) -> JSONResponse:
        first_day = _parse_date(start)
        last_day = _parse_date(end)
        if last_day < first_day:
            raise HTTPException(
                status_code=400, detail="end date must be on or after start date"
            )
        with request.app.state.session.read() as store:
            document = build_export(store, first_day, last_day, now=now())
        filename = export_filename(first_day, last_day)
        return JSONResponse(
            document.model_dump(mode="json"),
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/import")
    def import_data(
        request: Request,
        payload: Dict[str, Any] = Body(...),
        mode: str = Query(default="merge", pattern="^(merge|replace)$"),
    ) -> Dict[str, Any]:
        try:
            preview = parse_document(payload)
        except ImportFormatError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        with request.app.state.session.write() as store:
            if mode == "replace":
                result = replace_import(store, preview.document)
            else:
                result = merge_import(store, preview.document)
        return {
            "mode": mode,
            "added_records": result.added_records,
            "added_tags": result.added_tags,
            "skipped_records": result.skipped_records,
        }

    @app.get("/")
    def index(request: Request):
        index_path = (Path(__file__).parent / "static" / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    return app


def _report(request: Request, days: list[date], exclude: List[str]) -> Dict[str, Any]:
    with request.app.state.session.read() as store:
        records = store.records_between(days[0], days[-1])
        tags = store.tags()
    report = period_report(records, days, exclude, tags)
    result = report.aggregate
    return {
        "start": days[0].isoformat(),
        "end": days[-1].isoformat(),
        "total_seconds": result.total,
        "average_seconds": report.average,
        "excluded_tag_ids": sorted(result.excluded_tag_ids),
        "by_tag": [
            {
                "tag_id": share.tag_id,
                "name": share.name,
                "color": share.tag.color if share.tag else None,
                "seconds": share.duration,
                "percent": round(share.percent, 1),
            }
            for share in result.by_tag
        ],
        "tag_seconds": result.durations,
        "days": [
            {
                "date": day.day.isoformat(),
                "seconds": day.duration,
                "record_count": day.record_count,
            }
            for day in report.days
        ],
    }


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return datetime.now().date()
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return parsed.date()


def _validated_interval(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start = as_local_naive(start)
    end = as_local_naive(end)
    try:
        validate_interval(start, end)
    except IntervalError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return start, end


def _active_for_day(store: RecordStore, day: date, now: datetime) -> Optional[Record]:
    active = store.in_progress_record(now)
    if active is None or active.start_time.date() != day:
        return None
    return active


def _tag_payload(tag: Tag) -> Dict[str, Any]:
    return {
        "id": tag.id,
        "name": tag.name,
        "color": tag.color,
        "text_color": contrast_color(tag.color),
        "is_excluded": tag.is_excluded,
    }


def _record_payload(record: Record, *, is_active: bool = False) -> Dict[str, Any]:
    return {
        "id": record.id,
        "description": record.description,
        "tag_ids": list(record.tag_ids),
        "start_time": record.start_time.isoformat(),
        "end_time": record.end_time.isoformat(),
        "duration_seconds": record.duration,
        "is_active": is_active,
    }


def _conflict_payload(conflict: Conflict) -> Dict[str, Any]:
    return {
        "record": _record_payload(conflict.other_record),
        "overlap_start": conflict.overlap_start.isoformat(),
        "overlap_end": conflict.overlap_end.isoformat(),
        "overlap_seconds": conflict.overlap_duration,
    }


def _half_payload(half: HalfDay, tags: dict[str, Tag]) -> Dict[str, Any]:
    blocks = []
    for block in half.blocks:
        tag = tags.get(block.record.primary_tag_id or "")
        blocks.append(
            {
                "record_id": block.record.id,
                "description": block.record.description,
                "tag_name": tag.name if tag else None,
                "color": tag.color if tag else None,
                "start_time": block.clipped_start.isoformat(),
                "end_time": block.clipped_end.isoformat(),
                "column": block.column,
                "total_columns": block.total_columns,
                "top": block.top,
                "height": block.height,
                "left": block.left,
                "width": block.width,
                "is_active": block.is_active,
                "is_overlapping": block.is_overlapping,
            }
        )
    return {
        "window_start": half.window_start.isoformat(),
        "window_end": half.window_end.isoformat(),
        "now_offset": half.now_offset,
        "blocks": blocks,
    }
