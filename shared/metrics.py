"""Prometheus metrics for the ingest → summarize → serve path.

Exposed via the /metrics mount in main.py. The CLI records into the same
registry; it is only scraped when the API process runs the pipeline.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Exports take minutes to hours; flushes take milliseconds to seconds
_INGEST_BUCKETS = (1, 5, 15, 30, 60, 120, 300, 600, 1200, 3600)
_FLUSH_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10)

# --- Ingestion ---
readings_ingested_total = Counter(
    "health_readings_ingested_total",
    "Readings handed to the store, by outcome",
    ["source_kind", "outcome"],  # outcome: inserted, duplicate
)

export_parse_failures_total = Counter(
    "health_export_parse_failures_total",
    "Exports abandoned because of malformed markup",
    ["source_kind"],
)

reading_batch_flush_seconds = Histogram(
    "health_reading_batch_flush_seconds",
    "Time to insert one batch of readings",
    ["source_kind"],
    buckets=_FLUSH_BUCKETS,
)

export_ingest_seconds = Histogram(
    "health_export_ingest_seconds",
    "Wall time of a complete export ingestion",
    ["source_kind"],
    buckets=_INGEST_BUCKETS,
)

# --- Summarization ---
summaries_written_total = Counter(
    "health_summaries_written_total",
    "Daily summaries upserted",
    ["category"],
)

summaries_skipped_total = Counter(
    "health_summaries_skipped_total",
    "Day/category pairs that produced no narrative",
    ["category"],
)

# --- API ---
api_requests_total = Counter(
    "health_api_requests_total",
    "API requests served",
    ["endpoint", "method", "status_code"],
)

api_response_duration_seconds = Histogram(
    "health_api_response_duration_seconds",
    "Time spent in an API handler",
    ["endpoint"],
)


def create_metrics_app():
    return make_asgi_app()
