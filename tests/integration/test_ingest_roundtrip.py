"""Integration test: export → readings → daily summaries against real Postgres.

Verifies the full path: streamed export.xml → ingest → generate_summaries →
summary rows, and that re-running both stages changes nothing.
"""

from io import BytesIO

import pytest
from sqlalchemy import func, select

from health.domain.orm import ReadingModel, SummaryModel
from health.ingest import ingest_export
from health.summarise.daily import generate_summaries
from shared.exceptions import ExportParseError
from tests.conftest import EXPORT_HEADER, build_export, record_xml, steps_xml

ENTITY_ID = "roundtrip-entity"

EXPORT = build_export(
    steps_xml(14, 8, 6000),
    steps_xml(14, 12, 7000),
    steps_xml(15, 9, 2500),
    record_xml(
        "HKQuantityTypeIdentifierRestingHeartRate",
        "58",
        "2024-03-14 06:00:00 -0700",
        unit="count/min",
    ),
    record_xml(
        "HKCategoryTypeIdentifierSleepAnalysis",
        "HKCategoryValueSleepAnalysisAsleepCore",
        "2024-03-14 01:00:00 -0700",
        end="2024-03-14 03:00:00 -0700",
    ),
    record_xml("HKQuantityTypeIdentifierUVExposure", "3", "2024-03-14 12:00:00 -0700"),
)


async def _count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


async def test_ingest_then_summarize_roundtrip(repo, db_session):
    result = await ingest_export(BytesIO(EXPORT), ENTITY_ID, repo, batch_size=2)
    assert (result.inserted, result.skipped, result.raw_count) == (5, 0, 5)

    written = await generate_summaries(repo, ENTITY_ID)
    # activity x2 days, vitals, sleep
    assert written == 4

    summaries = {
        (s.date, s.category): s
        for s in (await db_session.execute(select(SummaryModel))).scalars().all()
    }
    activity = summaries[("2024-03-14", "activity")]
    assert activity.narrative == "Active day. 13,000 steps."
    assert activity.structured_data["reading_count"] == 2
    assert summaries[("2024-03-14", "sleep")].narrative == "Sleep: 1 sleep segments recorded."
    assert summaries[("2024-03-14", "vitals")].narrative == "Resting heart rate: 58 bpm."


async def test_rerun_is_a_no_op(repo, db_session):
    await ingest_export(BytesIO(EXPORT), ENTITY_ID, repo)
    await generate_summaries(repo, ENTITY_ID)

    again = await ingest_export(BytesIO(EXPORT), ENTITY_ID, repo)
    assert again.inserted == 0
    assert again.skipped == again.raw_count == 5
    assert await generate_summaries(repo, ENTITY_ID) == 0

    assert await _count(db_session, ReadingModel) == 5
    assert await _count(db_session, SummaryModel) == 4


async def test_truncated_export_keeps_partial_batch(repo, db_session):
    truncated = (EXPORT_HEADER + steps_xml(14, 8, 10) + steps_xml(14, 9, 20)).encode()

    with pytest.raises(ExportParseError):
        await ingest_export(BytesIO(truncated), ENTITY_ID, repo)

    assert await _count(db_session, ReadingModel) == 2
