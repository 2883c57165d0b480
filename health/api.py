"""FastAPI router for the health timeline.

Endpoints:
- GET  /api/v1/sources
- GET  /api/v1/categories
- GET  /api/v1/timeline
- GET  /api/v1/readings
- GET  /api/v1/search
- POST /api/v1/notes
- POST /api/v1/annotations
"""

from __future__ import annotations

import time
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from health.domain.orm import NoteModel, ReadingModel, SummaryModel

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from health.domain.models import Category
from health.domain.taxonomy import CATEGORY_DESCRIPTIONS
from health.repository import ReadingRepository
from shared.config import settings
from shared.database import get_session
from shared.exceptions import InvalidCategoryError, InvalidDateRangeError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var

router = APIRouter(prefix="/api/v1")

NOTE = "note"
ALL = "all"


# --- Request models ---


class NoteRequest(BaseModel):
    """Request body for a free-standing timeline note."""

    text: str = Field(..., min_length=1, description="Note content, in clear factual language")
    timestamp: str | None = Field(None, description="ISO 8601 time the note applies to")
    source: str = Field("assistant", description="Identifier of the writer")


class AnnotationRequest(BaseModel):
    """Request body for annotating a specific date."""

    date: date
    text: str = Field(..., min_length=1)
    category: Category | None = None
    source: str = "assistant"


# --- Response helpers ---


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _observe(endpoint: str, method: str, status_code: int, start_time: float) -> None:
    api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


def _parse_category(value: str | None, extra: set[str] = frozenset()) -> str | None:
    """Validate a category filter. Returns None for "no filter"."""
    if value is None or value == ALL:
        return None
    allowed = {c.value for c in Category} | extra
    if value not in allowed:
        raise InvalidCategoryError(value, allowed | {ALL})
    return value


def _check_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise InvalidDateRangeError(str(start), str(end))


def _note_date(row: NoteModel) -> str:
    return row.annotation_date or row.timestamp[:10]


def _summary_entry(row: SummaryModel) -> dict[str, Any]:
    return {
        "type": "summary",
        "date": row.date,
        "category": row.category,
        "text": row.narrative,
        "structured_data": row.structured_data,
    }


def _note_entry(row: NoteModel) -> dict[str, Any]:
    return {
        "type": "note",
        "id": row.id,
        "date": _note_date(row),
        "category": row.annotation_category or NOTE,
        "text": row.text,
        "source": row.source,
    }


def _reading_entry(row: ReadingModel) -> dict[str, Any]:
    return {
        "short_name": row.short_name,
        "value": row.value,
        "unit": row.unit,
        "timestamp": row.timestamp,
        "end_timestamp": row.end_timestamp,
        "metadata": row.metadata_,
    }


# --- Endpoints ---


@router.get("/sources")
async def list_sources(session: AsyncSession = Depends(get_session)):
    """List ingested entities with reading counts and date ranges."""
    start_time = time.monotonic()
    sources = await ReadingRepository(session).list_sources()
    _observe("sources", "GET", 200, start_time)
    return {"data": {"count": len(sources), "sources": sources}, "meta": _meta()}


@router.get("/categories")
async def list_categories(
    session: AsyncSession = Depends(get_session),
    entity_id: str | None = Query(None),
):
    """List categories with a description of their contents and reading counts."""
    start_time = time.monotonic()
    counts = await ReadingRepository(session).count_readings_by_category(entity_id)
    categories = [
        {"name": c.value, "description": desc, "reading_count": counts.get(c.value, 0)}
        for c, desc in CATEGORY_DESCRIPTIONS.items()
    ]
    _observe("categories", "GET", 200, start_time)
    return {"data": {"categories": categories}, "meta": _meta()}


@router.get("/timeline")
async def browse_timeline(
    session: AsyncSession = Depends(get_session),
    entity_id: str | None = Query(None),
    start: date | None = Query(None, description="Defaults to 7 days ago"),
    end: date | None = Query(None, description="Defaults to today"),
    category: str | None = Query(None, description="A category, 'note' or 'all'"),
    limit: int = Query(50, ge=1, le=settings.max_timeline_limit),
    count_only: bool = Query(False),
):
    """Daily summaries plus notes for a period, merged in date order."""
    start_time = time.monotonic()
    _check_range(start, end)
    today = datetime.now(UTC).date()
    end_day = end or today
    start_day = start or end_day - timedelta(days=settings.default_timeline_days)
    _check_range(start_day, end_day)
    start_s, end_s = start_day.isoformat(), end_day.isoformat()
    selected = _parse_category(category, extra={NOTE})
    repo = ReadingRepository(session)

    if count_only:
        counts = await repo.count_summaries_by_category(entity_id, start_s, end_s)
        note_count = await repo.count_notes(start_s, end_s)
        if note_count > 0:
            counts[NOTE] = note_count
        _observe("timeline", "GET", 200, start_time)
        return {
            "data": {
                "start": start_s,
                "end": end_s,
                "counts": counts,
                "total": sum(counts.values()),
            },
            "meta": _meta(),
        }

    entries: list[dict[str, Any]] = []
    if selected != NOTE:
        summaries = await repo.browse_summaries(
            entity_id=entity_id,
            start=start_s,
            end=end_s,
            category=Category(selected) if selected else None,
            limit=limit,
        )
        entries.extend(_summary_entry(s) for s in summaries)
    if selected in (None, NOTE):
        notes = await repo.browse_notes(start=start_s, end=end_s, limit=limit)
        entries.extend(_note_entry(n) for n in notes)

    entries.sort(key=lambda e: e["date"])
    _observe("timeline", "GET", 200, start_time)
    return {
        "data": {"start": start_s, "end": end_s, "count": len(entries), "entries": entries},
        "meta": _meta(),
    }


@router.get("/readings")
async def query_readings(
    session: AsyncSession = Depends(get_session),
    short_name: str = Query(..., description="HeartRate, RestingHR, Steps, SleepAnalysis, ..."),
    entity_id: str | None = Query(None),
    start: str | None = Query(None, description="Start datetime (ISO 8601)"),
    end: str | None = Query(None, description="End datetime (ISO 8601)"),
    limit: int = Query(100, ge=1, le=settings.max_readings_limit),
):
    """Raw individual readings for one metric, newest first."""
    start_time = time.monotonic()
    if start and end and start > end:
        raise InvalidDateRangeError(start, end)
    rows = await ReadingRepository(session).query_readings(
        short_name=short_name, entity_id=entity_id, start=start, end=end, limit=limit
    )
    readings = [_reading_entry(r) for r in rows]
    _observe("readings", "GET", 200, start_time)
    return {"data": {"count": len(readings), "readings": readings}, "meta": _meta()}


@router.get("/search")
async def search_context(
    session: AsyncSession = Depends(get_session),
    q: str = Query(..., min_length=1, description="Natural language search query"),
    category: str | None = Query(None),
    start: date | None = Query(None),
    end: date | None = Query(None),
    limit: int = Query(10, ge=1, le=settings.max_search_limit),
):
    """Full-text search across daily summaries and notes."""
    start_time = time.monotonic()
    _check_range(start, end)
    selected = _parse_category(category)
    cat = Category(selected) if selected else None
    start_s = start.isoformat() if start else None
    end_s = end.isoformat() if end else None
    repo = ReadingRepository(session)

    summaries = await repo.search_summaries(q, category=cat, start=start_s, end=end_s, limit=limit)
    notes = await repo.search_notes(
        q, category=cat, start=start_s, end=end_s, limit=min(limit, 5)
    )

    lines: list[str] = []
    by_category: dict[str, list[dict[str, str]]] = {}
    for s in summaries:
        lines.append(f"[{s.category}] {s.date}: {s.narrative}")
        by_category.setdefault(s.category, []).append({"date": s.date, "summary": s.narrative})
    for n in notes:
        day = _note_date(n)
        lines.append(f"[{NOTE}] {day}: {n.text}")
        by_category.setdefault(NOTE, []).append({"date": day, "summary": n.text})

    _observe("search", "GET", 200, start_time)
    return {
        "data": {
            "query": q,
            "result_count": len(summaries) + len(notes),
            "narrative": "\n".join(lines),
            "structured_data": by_category,
        },
        "meta": _meta(),
    }


@router.post("/notes", status_code=201)
async def add_note(body: NoteRequest, session: AsyncSession = Depends(get_session)):
    """Save a timestamped note to the timeline."""
    start_time = time.monotonic()
    timestamp = body.timestamp or datetime.now(UTC).isoformat()
    note_id = await ReadingRepository(session).insert_note(
        timestamp=timestamp, text=body.text, source=body.source
    )
    _observe("notes", "POST", 201, start_time)
    return {"data": {"note_id": note_id, "timestamp": timestamp}, "meta": _meta()}


@router.post("/annotations", status_code=201)
async def annotate(body: AnnotationRequest, session: AsyncSession = Depends(get_session)):
    """Attach an explanation to a specific date (and optionally a category)."""
    start_time = time.monotonic()
    annotated = body.date.isoformat()
    note_id = await ReadingRepository(session).insert_note(
        timestamp=datetime.now(UTC).isoformat(),
        text=body.text,
        source=body.source,
        annotation_date=annotated,
        annotation_category=body.category,
    )
    _observe("annotations", "POST", 201, start_time)
    return {
        "data": {
            "note_id": note_id,
            "annotated_date": annotated,
            "category": body.category.value if body.category else None,
        },
        "meta": _meta(),
    }
