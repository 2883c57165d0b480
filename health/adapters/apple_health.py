"""Apple Health export.xml → canonical Reading mapper.

Inbound anti-corruption layer: translates Apple's element attributes,
timestamp format and type identifiers into canonical Readings.

Filter policy:
- <Record> elements need a supported ``type`` and a ``startDate``
- <Workout> elements need a ``startDate``; every activity type is accepted
Everything else returns None and is skipped by the ingestor.
"""

import math
import re
from typing import Any

from health.domain.models import Category, Reading
from health.domain.taxonomy import classify

SOURCE_KIND = "apple_health"
WORKOUT_RECORD_TYPE = "HKWorkout"
_WORKOUT_PREFIX = "HKWorkoutActivityType"

# Apple writes "2024-01-15 08:30:00 -0700"
_APPLE_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})\s+([+-]\d{2})(\d{2})$"
)


def normalize_timestamp(raw: str) -> str:
    """Convert Apple's timestamp to ISO 8601 with a colon in the offset.

    "2024-01-15 08:30:00 -0700" → "2024-01-15T08:30:00-07:00". The offset is
    kept verbatim. Anything not in Apple's format is returned unchanged.
    """
    m = _APPLE_TIMESTAMP.match(raw)
    if m is None:
        return raw
    return f"{m[1]}T{m[2]}{m[3]}:{m[4]}"


def parse_value(raw: str | None) -> float | None:
    """Parse a numeric attribute. Missing, non-numeric and non-finite become None."""
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _is_label(raw: str) -> bool:
    try:
        float(raw)
    except ValueError:
        return True
    return False


class AppleHealthMapper:
    source_kind = SOURCE_KIND

    def map_element(self, tag: str, attrs: dict[str, str], entity_id: str) -> Reading | None:
        """Map one opened element to a Reading, or None if it is not ingested."""
        if tag == "Record":
            return self._map_record(attrs, entity_id)
        if tag == "Workout":
            return self._map_workout(attrs, entity_id)
        return None

    def _map_record(self, attrs: dict[str, str], entity_id: str) -> Reading | None:
        record_type = attrs.get("type")
        if not record_type:
            return None
        mapping = classify(record_type)
        if mapping is None:
            return None
        start = attrs.get("startDate")
        if not start:
            return None

        category, short_name = mapping
        timestamp = normalize_timestamp(start)
        end = attrs.get("endDate")
        raw_value = attrs.get("value")
        value = parse_value(raw_value)

        metadata: dict[str, Any] = {}
        if raw_value is not None and _is_label(raw_value):
            # Category records carry a label instead of a number
            metadata["category_value"] = raw_value

        return Reading(
            entity_id=entity_id,
            source_kind=self.source_kind,
            record_type=record_type,
            short_name=short_name,
            category=category,
            value=value,
            unit=attrs.get("unit", ""),
            timestamp=timestamp,
            end_timestamp=normalize_timestamp(end) if end else None,
            metadata=metadata,
            dedup_key=Reading.compute_dedup_key(timestamp, record_type, value),
        )

    def _map_workout(self, attrs: dict[str, str], entity_id: str) -> Reading | None:
        start = attrs.get("startDate")
        if not start:
            return None

        activity_type = attrs.get("workoutActivityType", "Unknown")
        timestamp = normalize_timestamp(start)
        end = attrs.get("endDate")

        return Reading(
            entity_id=entity_id,
            source_kind=self.source_kind,
            record_type=WORKOUT_RECORD_TYPE,
            short_name=activity_type.replace(_WORKOUT_PREFIX, ""),
            category=Category.WORKOUT,
            value=parse_value(attrs.get("duration")),
            unit=attrs.get("durationUnit", "min"),
            timestamp=timestamp,
            end_timestamp=normalize_timestamp(end) if end else None,
            metadata={
                "activity_type": activity_type,
                "energy_burned": parse_value(attrs.get("totalEnergyBurned")),
            },
            dedup_key=Reading.compute_workout_dedup_key(timestamp, activity_type),
        )
