"""SQLAlchemy ORM models for all three tables.

Tables:
- readings: atomic measurements, unique by dedup_key
- summaries: one narrative per (entity, day, category), full-text indexed
- notes: agent-written annotations, full-text indexed

Timestamps are stored as the canonical offset-aware text produced at
ingestion; the calendar day of a reading is the first 10 characters.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    literal_column,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ReadingModel(Base):
    __tablename__ = "readings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    # Provenance
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    source_kind: Mapped[str] = mapped_column(String(64), nullable=False)
    record_type: Mapped[str] = mapped_column(Text, nullable=False)

    # Classification
    short_name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)

    # Measurement
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    timestamp: Mapped[str] = mapped_column(Text, nullable=False)
    end_timestamp: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )

    # Identity
    dedup_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    __table_args__ = (
        Index("idx_readings_entity_type_ts", "entity_id", "record_type", "timestamp"),
        Index("idx_readings_category", "category"),
        Index("idx_readings_ts", "timestamp"),
        Index("idx_readings_short_name", "short_name"),
    )


class SummaryModel(Base):
    __tablename__ = "summaries"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    narrative: Mapped[str] = mapped_column(Text, nullable=False)
    structured_data: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("entity_id", "date", "category", name="uq_summaries_entity_date_category"),
        Index("idx_summaries_date", "date"),
    )


class NoteModel(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    timestamp: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(128), nullable=False, server_default="unknown")
    annotation_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    annotation_category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_notes_timestamp", "timestamp"),
        Index("idx_notes_annotation", "annotation_date"),
    )


def fts_document(column):
    """English full-text vector over a text column; matches the GIN indexes below."""
    return func.to_tsvector(literal_column("'english'"), column)


def fts_query(query_text: str):
    """Parse free text (web search syntax) into an English tsquery."""
    return func.websearch_to_tsquery(literal_column("'english'"), query_text)


Index("idx_summaries_narrative_fts", fts_document(SummaryModel.narrative), postgresql_using="gin")
Index("idx_notes_text_fts", fts_document(NoteModel.text), postgresql_using="gin")
