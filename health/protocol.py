"""Storage protocol for the ingestion and summarization core.

The pipeline depends only on this interface, never on a concrete store.
ReadingRepository (PostgreSQL) implements it; tests use an in-memory fake.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from health.domain.models import Category, DailySummary, Reading, WeeklyBaseline


@runtime_checkable
class ReadingStore(Protocol):
    """Persistence contract used by the ingestor and the daily aggregator."""

    async def insert_readings_batch(self, readings: Sequence[Reading]) -> int:
        """Insert a batch atomically, ignoring readings whose dedup_key exists.

        Returns:
            Number of readings actually inserted.
        """
        ...

    async def upsert_summary(self, summary: DailySummary) -> None:
        """Insert or wholly replace the summary for (entity_id, date, category)."""
        ...

    async def query_readings_for_day_category(
        self, entity_id: str, category: Category, date: str
    ) -> list[Reading]:
        """All readings of one category whose timestamp falls on ``date``, by timestamp."""
        ...

    async def query_trailing_baseline(
        self, entity_id: str, category: Category, date: str
    ) -> dict[str, WeeklyBaseline]:
        """Per short name statistics over the 7 days strictly before ``date``."""
        ...

    async def find_missing_summary_candidates(self, entity_id: str) -> list[tuple[str, Category]]:
        """Distinct (day, category) pairs with readings but no summary, by day."""
        ...
