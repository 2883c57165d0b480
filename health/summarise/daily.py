"""Daily aggregator: readings → one DailySummary per (entity, day, category).

Only (day, category) pairs that have readings but no summary yet are
summarized; summaries are never created for empty days. Each pair is
processed independently: fetch the day's readings, group them by short
name, fetch the trailing 7-day baseline, run the category summarizer and
upsert the result.
"""

import structlog

from health.domain.models import Category, DailySummary, DayMetric, Reading
from health.protocol import ReadingStore
from health.summarise.summarizers import summarize
from shared.metrics import summaries_skipped_total, summaries_written_total

logger = structlog.get_logger()


def group_by_short_name(readings: list[Reading]) -> dict[str, DayMetric]:
    """Group one day's readings by short name, preserving timestamp order."""
    metrics: dict[str, DayMetric] = {}
    for r in readings:
        metric = metrics.get(r.short_name)
        if metric is None:
            metric = DayMetric(short_name=r.short_name, record_type=r.record_type, unit=r.unit)
            metrics[r.short_name] = metric
        if r.value is not None:
            metric.values.append(r.value)
            metric.metadata.append(r.metadata)
        label = r.metadata.get("category_value")
        if label:
            metric.labels.append(label)
        metric.timestamps.append(r.timestamp)
        metric.end_timestamps.append(r.end_timestamp)
    return metrics


async def summarize_day(
    store: ReadingStore, entity_id: str, date: str, category: Category
) -> DailySummary | None:
    """Build the summary for one day and category, or None if there is nothing to say."""
    readings = await store.query_readings_for_day_category(entity_id, category, date)
    metrics = group_by_short_name(readings)
    baseline = await store.query_trailing_baseline(entity_id, category, date)

    narrative, data = summarize(category, metrics, baseline)
    if not narrative or narrative == ".":
        return None

    return DailySummary(
        entity_id=entity_id,
        date=date,
        category=category,
        narrative=narrative,
        structured_data={**data, "reading_count": len(readings)},
    )


async def generate_summaries(store: ReadingStore, entity_id: str) -> int:
    """Summarize every (day, category) of ``entity_id`` that has no summary yet.

    Returns the number of summaries written.
    """
    candidates = await store.find_missing_summary_candidates(entity_id)
    logger.info("summaries_pending", entity_id=entity_id, candidates=len(candidates))

    written = 0
    for date, category in candidates:
        summary = await summarize_day(store, entity_id, date, category)
        if summary is None:
            summaries_skipped_total.labels(category=category.value).inc()
            logger.debug(
                "summary_skipped", entity_id=entity_id, date=date, category=category.value
            )
            continue
        await store.upsert_summary(summary)
        summaries_written_total.labels(category=category.value).inc()
        written += 1

    logger.info("summaries_generated", entity_id=entity_id, written=written)
    return written
