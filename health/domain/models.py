"""Canonical domain models for the health timeline.

Design principles:
- One Reading per atomic measurement or session, from any export format
- Nullable value: None = "exporter gave no usable number", not "zero"
- Provenance: every reading carries its entity, source kind and raw record type
- Identity: dedup_key is deterministic, so re-ingesting an export is a no-op
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class Category(StrEnum):
    VITALS = "vitals"
    ACTIVITY = "activity"
    SLEEP = "sleep"
    BODY = "body"
    NUTRITION = "nutrition"
    FITNESS = "fitness"
    MINDFULNESS = "mindfulness"
    WORKOUT = "workout"
    OTHER = "other"


class Reading(BaseModel):
    """One atomic measurement or event. Immutable once stored."""

    entity_id: str
    source_kind: str
    record_type: str
    short_name: str
    category: Category
    value: float | None = None
    unit: str = ""
    timestamp: str | None = None
    end_timestamp: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    dedup_key: str

    @staticmethod
    def compute_dedup_key(timestamp: str, record_type: str, value: float | None) -> str:
        return f"{timestamp}|{record_type}|{format_key_value(value)}"

    @staticmethod
    def compute_workout_dedup_key(timestamp: str, activity_type: str) -> str:
        return f"{timestamp}|Workout|{activity_type}"


def format_key_value(value: float | None) -> str:
    """Render a value for the dedup key: integral floats lose their ``.0``."""
    if value is None:
        return "null"
    if float(value).is_integer():
        return str(int(value))
    return repr(value)


class DailySummary(BaseModel):
    """One derived narrative per (entity, calendar day, category)."""

    entity_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    category: Category
    narrative: str
    structured_data: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class WeeklyBaseline:
    """Trailing 7-day statistics for one short name. Never persisted."""

    average: float
    minimum: float
    maximum: float
    sample_count: int


@dataclass
class DayMetric:
    """All of one day's readings for a single short name within a category."""

    short_name: str
    record_type: str
    unit: str
    # Non-null values only; metadata is aligned with values
    values: list[float] = field(default_factory=list)
    metadata: list[dict[str, Any]] = field(default_factory=list)
    # One entry per reading, including readings without a value
    timestamps: list[str | None] = field(default_factory=list)
    end_timestamps: list[str | None] = field(default_factory=list)
    # Non-numeric category labels (sleep stages), in reading order
    labels: list[str] = field(default_factory=list)
