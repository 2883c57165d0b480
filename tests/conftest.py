"""Shared test fixtures."""

import io
import sys
from collections.abc import Sequence
from datetime import date as date_type
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from health.domain.models import Category, DailySummary, Reading, WeeklyBaseline  # noqa: E402

ENTITY_ID = "test-entity"

EXPORT_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n<HealthData locale="en_US">\n'
EXPORT_FOOTER = "</HealthData>\n"


def record_xml(
    record_type: str,
    value: str | None,
    start: str,
    end: str | None = None,
    unit: str | None = None,
) -> str:
    attrs = [f'type="{record_type}"']
    if unit is not None:
        attrs.append(f'unit="{unit}"')
    if value is not None:
        attrs.append(f'value="{value}"')
    attrs.append(f'startDate="{start}"')
    attrs.append(f'endDate="{end or start}"')
    return f" <Record {' '.join(attrs)}/>\n"


def steps_xml(day: int, hour: int, value: int) -> str:
    """A step count record on 2024-03-{day} at {hour}:00, offset -0700."""
    ts = f"2024-03-{day:02d} {hour:02d}:00:00 -0700"
    return record_xml("HKQuantityTypeIdentifierStepCount", str(value), ts, unit="count")


def build_export(*elements: str) -> bytes:
    return (EXPORT_HEADER + "".join(elements) + EXPORT_FOOTER).encode()


class FakeStore:
    """In-memory ReadingStore: dedup by key, summaries keyed by (entity, date, category)."""

    def __init__(self):
        self.readings: dict[str, Reading] = {}
        self.summaries: dict[tuple[str, str, Category], DailySummary] = {}
        self.flushes: list[int] = []
        self.fail_on_insert: Exception | None = None

    async def insert_readings_batch(self, readings: Sequence[Reading]) -> int:
        self.flushes.append(len(readings))
        if self.fail_on_insert is not None:
            raise self.fail_on_insert
        inserted = 0
        for r in readings:
            if r.dedup_key not in self.readings:
                self.readings[r.dedup_key] = r
                inserted += 1
        return inserted

    async def upsert_summary(self, summary: DailySummary) -> None:
        self.summaries[(summary.entity_id, summary.date, summary.category)] = summary

    async def query_readings_for_day_category(
        self, entity_id: str, category: Category, date: str
    ) -> list[Reading]:
        rows = [
            r
            for r in self.readings.values()
            if r.entity_id == entity_id and r.category == category and r.timestamp[:10] == date
        ]
        return sorted(rows, key=lambda r: r.timestamp)

    async def query_trailing_baseline(
        self, entity_id: str, category: Category, date: str
    ) -> dict[str, WeeklyBaseline]:
        window_start = (date_type.fromisoformat(date) - timedelta(days=7)).isoformat()
        values: dict[str, list[float]] = {}
        for r in self.readings.values():
            if r.entity_id != entity_id or r.category != category or r.value is None:
                continue
            if window_start <= r.timestamp[:10] < date:
                values.setdefault(r.short_name, []).append(r.value)
        return {
            name: WeeklyBaseline(
                average=sum(vals) / len(vals),
                minimum=min(vals),
                maximum=max(vals),
                sample_count=len(vals),
            )
            for name, vals in values.items()
        }

    async def find_missing_summary_candidates(self, entity_id: str) -> list[tuple[str, Category]]:
        pairs = {
            (r.timestamp[:10], r.category)
            for r in self.readings.values()
            if r.entity_id == entity_id
        }
        missing = [p for p in pairs if (entity_id, p[0], p[1]) not in self.summaries]
        return sorted(missing, key=lambda p: (p[0], p[1].value))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def entity_id():
    return ENTITY_ID


@pytest.fixture
def export_stream():
    """Build an in-memory export.xml from record snippets."""

    def _build(*elements: str) -> io.BytesIO:
        return io.BytesIO(build_export(*elements))

    return _build
