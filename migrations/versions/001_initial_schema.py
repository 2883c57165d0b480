"""Initial schema: readings, summaries, notes

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- readings (atomic measurements) ---
    op.create_table(
        "readings",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Text, nullable=False),
        sa.Column("source_kind", sa.String(64), nullable=False),
        sa.Column("record_type", sa.Text, nullable=False),
        sa.Column("short_name", sa.String(128), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("value", sa.Float, nullable=True),
        sa.Column("unit", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("timestamp", sa.Text, nullable=False),
        sa.Column("end_timestamp", sa.Text, nullable=True),
        sa.Column(
            "metadata", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")
        ),
        sa.Column("dedup_key", sa.Text, nullable=False),
        sa.UniqueConstraint("dedup_key", name="readings_dedup_key_key"),
    )
    op.create_index(
        "idx_readings_entity_type_ts", "readings", ["entity_id", "record_type", "timestamp"]
    )
    op.create_index("idx_readings_category", "readings", ["category"])
    op.create_index("idx_readings_ts", "readings", ["timestamp"])
    op.create_index("idx_readings_short_name", "readings", ["short_name"])

    # --- summaries (one narrative per entity, day and category) ---
    op.create_table(
        "summaries",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Text, nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("narrative", sa.Text, nullable=False),
        sa.Column(
            "structured_data",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "entity_id", "date", "category", name="uq_summaries_entity_date_category"
        ),
    )
    op.create_index("idx_summaries_date", "summaries", ["date"])
    op.create_index(
        "idx_summaries_narrative_fts",
        "summaries",
        [sa.text("to_tsvector('english', narrative)")],
        postgresql_using="gin",
    )

    # --- notes (free-standing notes and date annotations) ---
    op.create_table(
        "notes",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.Text, nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("source", sa.String(128), nullable=False, server_default="unknown"),
        sa.Column("annotation_date", sa.String(10), nullable=True),
        sa.Column("annotation_category", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("idx_notes_timestamp", "notes", ["timestamp"])
    op.create_index("idx_notes_annotation", "notes", ["annotation_date"])
    op.create_index(
        "idx_notes_text_fts",
        "notes",
        [sa.text("to_tsvector('english', text)")],
        postgresql_using="gin",
    )

    # summaries.updated_at tracks the last regeneration
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_summaries_updated_at
            BEFORE UPDATE ON summaries
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_summaries_updated_at ON summaries")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column")
    op.drop_table("notes")
    op.drop_table("summaries")
    op.drop_table("readings")
