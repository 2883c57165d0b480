"""Streaming ingestion pipeline: export.xml → map → batch → insert-if-absent.

The pipeline is idempotent end-to-end:
- Same export always produces the same readings and dedup keys
- The store ignores readings whose dedup_key already exists
- Safe to re-run against an export that was already (partly) ingested

The export is never materialized: it is fed to an incremental pull parser in
fixed-size chunks and every closed top-level element is dropped from the tree.
Peak memory is bounded by the batch size, not by the export size.
"""

import asyncio
import os
import time
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable
from contextlib import nullcontext
from dataclasses import dataclass
from typing import IO

import structlog

from health.adapters.apple_health import AppleHealthMapper
from health.domain.models import Reading
from health.protocol import ReadingStore
from shared.config import settings
from shared.exceptions import ExportParseError
from shared.metrics import (
    export_ingest_seconds,
    export_parse_failures_total,
    reading_batch_flush_seconds,
    readings_ingested_total,
)

logger = structlog.get_logger()

ProgressCallback = Callable[[int], None]
ExportSource = str | os.PathLike[str] | IO[bytes]


@dataclass
class IngestResult:
    """Aggregate counts from one ingestion run."""

    inserted: int = 0
    skipped: int = 0
    raw_count: int = 0


def _describe(source: ExportSource) -> str:
    if isinstance(source, (str, os.PathLike)):
        return os.fspath(source)
    return getattr(source, "name", "<stream>")


def _open_source(source: ExportSource):
    """Open a path for binary reading; file objects are used as-is and left open."""
    if isinstance(source, (str, os.PathLike)):
        return open(source, "rb")
    return nullcontext(source)


async def ingest_export(
    source: ExportSource,
    entity_id: str,
    store: ReadingStore,
    on_progress: ProgressCallback | None = None,
    batch_size: int | None = None,
    chunk_size: int | None = None,
    mapper: AppleHealthMapper | None = None,
) -> IngestResult:
    """Stream an export into the store in bounded, atomic batches.

    Steps:
    1. Feed the export to an XMLPullParser chunk by chunk
    2. Map each opened <Record>/<Workout> element to a Reading (or skip it)
    3. Flush every ``batch_size`` readings through store.insert_readings_batch
    4. Flush the remainder at end of stream

    A malformed stream triggers one best-effort flush of the partial batch,
    then raises ExportParseError chained to the parser error. Store errors
    during a normal flush propagate unchanged.
    """
    start_time = time.monotonic()
    batch_size = batch_size or settings.ingest_batch_size
    chunk_size = chunk_size or settings.ingest_chunk_bytes
    mapper = mapper or AppleHealthMapper()
    source_name = _describe(source)
    kind = mapper.source_kind
    result = IngestResult()
    batch: list[Reading] = []

    async def flush() -> None:
        nonlocal batch
        if not batch:
            return
        flush_start = time.monotonic()
        inserted = await store.insert_readings_batch(batch)
        skipped = len(batch) - inserted
        result.inserted += inserted
        result.skipped += skipped
        batch = []

        reading_batch_flush_seconds.labels(source_kind=kind).observe(time.monotonic() - flush_start)
        readings_ingested_total.labels(source_kind=kind, outcome="inserted").inc(inserted)
        readings_ingested_total.labels(source_kind=kind, outcome="duplicate").inc(skipped)
        logger.info(
            "batch_flushed",
            entity_id=entity_id,
            inserted=inserted,
            skipped=skipped,
            raw_count=result.raw_count,
        )

    root: ET.Element | None = None
    depth = 0

    async def handle(events: Iterable[tuple[str, ET.Element]]) -> None:
        nonlocal root, depth
        for event, elem in events:
            if event == "end":
                depth -= 1
                # A direct child of the root is complete; drop everything parsed so far
                if depth == 1 and root is not None:
                    root.clear()
                continue

            depth += 1
            if root is None:
                root = elem
                continue

            reading = mapper.map_element(elem.tag, dict(elem.attrib), entity_id)
            if reading is None:
                continue
            batch.append(reading)
            result.raw_count += 1

            if len(batch) >= batch_size:
                await flush()
                if on_progress is not None:
                    on_progress(result.raw_count)

    parser = ET.XMLPullParser(events=("start", "end"))
    logger.info("ingest_started", source=source_name, entity_id=entity_id, batch_size=batch_size)

    try:
        with _open_source(source) as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, chunk_size)
                if not chunk:
                    break
                parser.feed(chunk)
                await handle(parser.read_events())
        parser.close()
        await handle(parser.read_events())
    except ET.ParseError as exc:
        export_parse_failures_total.labels(source_kind=kind).inc()
        logger.error(
            "export_parse_failed",
            source=source_name,
            entity_id=entity_id,
            raw_count=result.raw_count,
            error=str(exc),
        )
        try:
            await flush()
        except Exception:
            # Keep the parse error as the reported failure
            logger.exception("partial_flush_failed", source=source_name, entity_id=entity_id)
        raise ExportParseError(source_name, str(exc)) from exc

    await flush()
    if on_progress is not None:
        on_progress(result.raw_count)

    export_ingest_seconds.labels(source_kind=kind).observe(time.monotonic() - start_time)
    logger.info(
        "ingest_completed",
        source=source_name,
        entity_id=entity_id,
        inserted=result.inserted,
        skipped=result.skipped,
        raw_count=result.raw_count,
    )
    return result
