"""Reading repository: all DB access for the health timeline.

Implements the ReadingStore protocol used by ingestion and summarization,
plus the read queries behind the API (full-text search, timeline browse,
raw readings, sources, per-category counts) and note writes.
"""

from collections.abc import Sequence
from datetime import date as date_type
from datetime import timedelta
from typing import Any

from sqlalchemy import and_, exists, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from health.domain.models import Category, DailySummary, Reading, WeeklyBaseline
from health.domain.orm import NoteModel, ReadingModel, SummaryModel, fts_document, fts_query

# asyncpg caps bind parameters per statement at 32767; 11 columns per row
_INSERT_CHUNK_ROWS = 1000


def _day(column):
    """Calendar day of a canonical timestamp column (its YYYY-MM-DD prefix)."""
    return func.substr(column, 1, 10)


def _note_day():
    """Day a note belongs to: its annotation date, else the day it was written."""
    return func.coalesce(NoteModel.annotation_date, _day(NoteModel.timestamp))


def _reading_row(reading: Reading) -> dict[str, Any]:
    return {
        "entity_id": reading.entity_id,
        "source_kind": reading.source_kind,
        "record_type": reading.record_type,
        "short_name": reading.short_name,
        "category": reading.category.value,
        "value": reading.value,
        "unit": reading.unit,
        "timestamp": reading.timestamp,
        "end_timestamp": reading.end_timestamp,
        "metadata_": reading.metadata,
        "dedup_key": reading.dedup_key,
    }


def _to_reading(row: ReadingModel) -> Reading:
    return Reading(
        entity_id=row.entity_id,
        source_kind=row.source_kind,
        record_type=row.record_type,
        short_name=row.short_name,
        category=Category(row.category),
        value=row.value,
        unit=row.unit,
        timestamp=row.timestamp,
        end_timestamp=row.end_timestamp,
        metadata=row.metadata_ or {},
        dedup_key=row.dedup_key,
    )


class ReadingRepository:
    """PostgreSQL-backed ReadingStore.

    The session is owned by the caller; every write method commits its own
    transaction so a batch or a summary is all-or-nothing.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- ReadingStore ---

    async def insert_readings_batch(self, readings: Sequence[Reading]) -> int:
        """Insert readings in one transaction; existing dedup_keys are ignored.

        Returns the number of rows actually inserted.
        """
        if not readings:
            return 0
        rows = [_reading_row(r) for r in readings]
        inserted = 0
        try:
            for i in range(0, len(rows), _INSERT_CHUNK_ROWS):
                stmt = (
                    pg_insert(ReadingModel)
                    .values(rows[i : i + _INSERT_CHUNK_ROWS])
                    .on_conflict_do_nothing(index_elements=["dedup_key"])
                    .returning(ReadingModel.id)
                )
                result = await self.session.execute(stmt)
                inserted += len(result.all())
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return inserted

    async def upsert_summary(self, summary: DailySummary) -> None:
        """Insert or replace the summary for (entity_id, date, category)."""
        stmt = pg_insert(SummaryModel).values(
            entity_id=summary.entity_id,
            date=summary.date,
            category=summary.category.value,
            narrative=summary.narrative,
            structured_data=summary.structured_data,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_summaries_entity_date_category",
            set_={
                "narrative": stmt.excluded.narrative,
                "structured_data": stmt.excluded.structured_data,
                "updated_at": func.now(),
            },
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def query_readings_for_day_category(
        self, entity_id: str, category: Category, date: str
    ) -> list[Reading]:
        query = (
            select(ReadingModel)
            .where(
                ReadingModel.entity_id == entity_id,
                ReadingModel.category == category.value,
                _day(ReadingModel.timestamp) == date,
            )
            .order_by(ReadingModel.timestamp, ReadingModel.id)
        )
        result = await self.session.execute(query)
        return [_to_reading(row) for row in result.scalars().all()]

    async def query_trailing_baseline(
        self, entity_id: str, category: Category, date: str
    ) -> dict[str, WeeklyBaseline]:
        """Per short name avg/min/max/count over [date - 7 days, date)."""
        window_start = (date_type.fromisoformat(date) - timedelta(days=7)).isoformat()
        day = _day(ReadingModel.timestamp)
        query = (
            select(
                ReadingModel.short_name,
                func.avg(ReadingModel.value).label("avg_val"),
                func.min(ReadingModel.value).label("min_val"),
                func.max(ReadingModel.value).label("max_val"),
                func.count(ReadingModel.value).label("cnt"),
            )
            .where(
                ReadingModel.entity_id == entity_id,
                ReadingModel.category == category.value,
                day >= window_start,
                day < date,
            )
            .group_by(ReadingModel.short_name)
        )
        result = await self.session.execute(query)
        baseline: dict[str, WeeklyBaseline] = {}
        for row in result.all():
            # Short names whose readings in the window are all null have no statistics
            if row.cnt == 0:
                continue
            baseline[row.short_name] = WeeklyBaseline(
                average=float(row.avg_val),
                minimum=float(row.min_val),
                maximum=float(row.max_val),
                sample_count=row.cnt,
            )
        return baseline

    async def find_missing_summary_candidates(self, entity_id: str) -> list[tuple[str, Category]]:
        """Distinct (day, category) pairs with readings but no summary row, by day."""
        day = _day(ReadingModel.timestamp)
        has_summary = exists().where(
            SummaryModel.entity_id == ReadingModel.entity_id,
            SummaryModel.date == day,
            SummaryModel.category == ReadingModel.category,
        )
        query = (
            select(day.label("day"), ReadingModel.category)
            .where(ReadingModel.entity_id == entity_id, ~has_summary)
            .distinct()
            .order_by("day", ReadingModel.category)
        )
        result = await self.session.execute(query)
        return [(row.day, Category(row.category)) for row in result.all()]

    # --- Read path ---

    async def search_summaries(
        self,
        query_text: str,
        category: Category | None = None,
        start: str | None = None,
        end: str | None = None,
        limit: int = 20,
    ) -> list[SummaryModel]:
        """Ranked full-text search over summary narratives."""
        tsquery = fts_query(query_text)
        document = fts_document(SummaryModel.narrative)
        query = select(SummaryModel).where(document.op("@@")(tsquery))
        if category:
            query = query.where(SummaryModel.category == category.value)
        if start:
            query = query.where(SummaryModel.date >= start)
        if end:
            query = query.where(SummaryModel.date <= end)
        query = query.order_by(func.ts_rank(document, tsquery).desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def search_notes(
        self,
        query_text: str,
        category: Category | None = None,
        start: str | None = None,
        end: str | None = None,
        limit: int = 10,
    ) -> list[NoteModel]:
        """Ranked full-text search over note text."""
        tsquery = fts_query(query_text)
        document = fts_document(NoteModel.text)
        query = select(NoteModel).where(document.op("@@")(tsquery))
        if category:
            query = query.where(NoteModel.annotation_category == category.value)
        if start:
            query = query.where(_note_day() >= start)
        if end:
            query = query.where(_note_day() <= end)
        query = query.order_by(func.ts_rank(document, tsquery).desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def query_readings(
        self,
        short_name: str | None = None,
        record_type: str | None = None,
        entity_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
        limit: int = 100,
    ) -> list[ReadingModel]:
        """Raw readings, newest first. short_name takes precedence over record_type."""
        query = select(ReadingModel)
        if short_name:
            query = query.where(ReadingModel.short_name == short_name)
        elif record_type:
            query = query.where(ReadingModel.record_type == record_type)
        if entity_id:
            query = query.where(ReadingModel.entity_id == entity_id)
        if start:
            query = query.where(ReadingModel.timestamp >= start)
        if end:
            query = query.where(ReadingModel.timestamp <= end)
        query = query.order_by(ReadingModel.timestamp.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def browse_summaries(
        self,
        entity_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
        category: Category | None = None,
        limit: int = 50,
    ) -> list[SummaryModel]:
        query = select(SummaryModel)
        if entity_id:
            query = query.where(SummaryModel.entity_id == entity_id)
        if start:
            query = query.where(SummaryModel.date >= start)
        if end:
            query = query.where(SummaryModel.date <= end)
        if category:
            query = query.where(SummaryModel.category == category.value)
        query = query.order_by(SummaryModel.date.asc(), SummaryModel.category).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def browse_notes(
        self,
        start: str | None = None,
        end: str | None = None,
        category: Category | None = None,
        limit: int = 50,
    ) -> list[NoteModel]:
        """Notes whose day (annotation date, else write date) falls in the window."""
        query = select(NoteModel)
        if start:
            query = query.where(_note_day() >= start)
        if end:
            query = query.where(_note_day() <= end)
        if category:
            query = query.where(NoteModel.annotation_category == category.value)
        query = query.order_by(_note_day(), NoteModel.timestamp).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_notes(self, start: str, end: str) -> int:
        query = (
            select(func.count()).select_from(NoteModel).where(_note_day().between(start, end))
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_sources(self) -> list[dict[str, Any]]:
        """Ingested entities with reading counts and time span."""
        query = select(
            ReadingModel.entity_id,
            ReadingModel.source_kind,
            func.count().label("reading_count"),
            func.min(ReadingModel.timestamp).label("earliest"),
            func.max(ReadingModel.timestamp).label("latest"),
        ).group_by(ReadingModel.entity_id, ReadingModel.source_kind)
        result = await self.session.execute(query)
        return [
            {
                "entity_id": r.entity_id,
                "source_kind": r.source_kind,
                "reading_count": r.reading_count,
                "earliest": r.earliest,
                "latest": r.latest,
            }
            for r in result.all()
        ]

    async def count_readings_by_category(self, entity_id: str | None = None) -> dict[str, int]:
        query = select(ReadingModel.category, func.count().label("count"))
        if entity_id:
            query = query.where(ReadingModel.entity_id == entity_id)
        query = query.group_by(ReadingModel.category)
        result = await self.session.execute(query)
        return {r.category: r.count for r in result.all()}

    async def count_summaries_by_category(
        self,
        entity_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> dict[str, int]:
        conditions = []
        if entity_id:
            conditions.append(SummaryModel.entity_id == entity_id)
        if start:
            conditions.append(SummaryModel.date >= start)
        if end:
            conditions.append(SummaryModel.date <= end)
        query = select(SummaryModel.category, func.count().label("count"))
        if conditions:
            query = query.where(and_(*conditions))
        query = query.group_by(SummaryModel.category)
        result = await self.session.execute(query)
        return {r.category: r.count for r in result.all()}

    async def insert_note(
        self,
        timestamp: str,
        text: str,
        source: str,
        annotation_date: str | None = None,
        annotation_category: Category | None = None,
    ) -> int:
        """Store a note and return its id."""
        stmt = (
            pg_insert(NoteModel)
            .values(
                timestamp=timestamp,
                text=text,
                source=source,
                annotation_date=annotation_date,
                annotation_category=annotation_category.value if annotation_category else None,
            )
            .returning(NoteModel.id)
        )
        result = await self.session.execute(stmt)
        note_id = result.scalar_one()
        await self.session.commit()
        return note_id
