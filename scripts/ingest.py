#!/usr/bin/env python3
"""Ingest an Apple Health export.xml, then generate daily summaries.

Usage:
    python scripts/ingest.py ./export.xml                   # entity "apple_health"
    python scripts/ingest.py ./export.xml my-watch          # custom entity id
    python scripts/ingest.py ./export.xml --init-db -v      # create tables, verbose logs
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from health.domain.orm import Base
from health.ingest import ingest_export
from health.repository import ReadingRepository
from health.summarise.daily import generate_summaries
from shared.config import settings
from shared.database import dispose_engine, get_engine, get_session_factory
from shared.logging import configure_logging


def _progress(count: int) -> None:
    sys.stderr.write(f"\r  Parsed {count:,} readings...")
    sys.stderr.flush()


async def run(xml_path: Path, entity_id: str, init_db: bool) -> None:
    """Ingest, summarize and print a per-category breakdown. Errors propagate."""
    try:
        if init_db:
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        async with get_session_factory()() as session:
            repo = ReadingRepository(session)

            print(f"Ingesting {xml_path}...", file=sys.stderr)
            result = await ingest_export(xml_path, entity_id, repo, on_progress=_progress)
            print("", file=sys.stderr)
            print(f"  Inserted: {result.inserted:,}", file=sys.stderr)
            print(f"  Skipped (dedup): {result.skipped:,}", file=sys.stderr)

            print("Generating daily summaries...", file=sys.stderr)
            written = await generate_summaries(repo, entity_id)
            print(f"  Generated {written} daily summaries", file=sys.stderr)

            breakdown = await repo.count_readings_by_category(entity_id)
            print("  Breakdown:", file=sys.stderr)
            for category, count in sorted(breakdown.items()):
                print(f"    {category}: {count:,}", file=sys.stderr)
    finally:
        await dispose_engine()

    print("Done.", file=sys.stderr)


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest an Apple Health export")
    parser.add_argument("xml_path", type=Path, help="Path to export.xml")
    parser.add_argument(
        "entity_id",
        nargs="?",
        default=settings.default_entity_id,
        help=f"Data source identity (default: {settings.default_entity_id})",
    )
    parser.add_argument("--init-db", action="store_true", help="Create tables before ingesting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every batch flush")
    args = parser.parse_args()

    if not args.xml_path.exists():
        print(f"File not found: {args.xml_path}", file=sys.stderr)
        return 1

    configure_logging(
        json_output=False, level=logging.INFO if args.verbose else logging.WARNING
    )

    try:
        asyncio.run(run(args.xml_path, args.entity_id, args.init_db))
    except Exception as exc:
        print(f"\nIngestion failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
