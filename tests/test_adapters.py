"""Tests for the Apple Health element mapper."""

import pytest

from health.adapters.apple_health import (
    SOURCE_KIND,
    WORKOUT_RECORD_TYPE,
    AppleHealthMapper,
    normalize_timestamp,
    parse_value,
)
from health.domain.models import Category
from tests.conftest import ENTITY_ID


class TestNormalizeTimestamp:
    def test_apple_format(self):
        assert normalize_timestamp("2024-01-15 08:30:00 -0700") == "2024-01-15T08:30:00-07:00"

    def test_positive_offset(self):
        assert normalize_timestamp("2024-01-15 23:59:59 +0530") == "2024-01-15T23:59:59+05:30"

    def test_keeps_local_day(self):
        # 23:30 at -07:00 is the next day in UTC; the local day must survive
        assert normalize_timestamp("2024-03-14 23:30:00 -0700").startswith("2024-03-14")

    @pytest.mark.parametrize("raw", ["2024-01-15T08:30:00Z", "yesterday", ""])
    def test_other_formats_pass_through(self, raw):
        assert normalize_timestamp(raw) == raw


class TestParseValue:
    def test_numeric(self):
        assert parse_value("72.5") == 72.5

    def test_missing(self):
        assert parse_value(None) is None

    def test_non_numeric(self):
        assert parse_value("HKCategoryValueSleepAnalysisAsleepCore") is None

    def test_nan(self):
        assert parse_value("NaN") is None

    @pytest.mark.parametrize("raw", ["inf", "-Infinity", "1e999"])
    def test_non_finite(self, raw):
        assert parse_value(raw) is None


class TestAppleHealthMapper:
    def setup_method(self):
        self.mapper = AppleHealthMapper()

    def test_maps_quantity_record(self):
        reading = self.mapper.map_element(
            "Record",
            {
                "type": "HKQuantityTypeIdentifierHeartRate",
                "unit": "count/min",
                "value": "62",
                "startDate": "2024-03-14 08:00:00 -0700",
                "endDate": "2024-03-14 08:00:00 -0700",
            },
            ENTITY_ID,
        )
        assert reading is not None
        assert reading.entity_id == ENTITY_ID
        assert reading.source_kind == SOURCE_KIND
        assert reading.category == Category.VITALS
        assert reading.short_name == "HeartRate"
        assert reading.value == 62.0
        assert reading.unit == "count/min"
        assert reading.timestamp == "2024-03-14T08:00:00-07:00"
        assert reading.dedup_key == (
            "2024-03-14T08:00:00-07:00|HKQuantityTypeIdentifierHeartRate|62"
        )
        assert reading.metadata == {}

    def test_category_record_keeps_label(self):
        reading = self.mapper.map_element(
            "Record",
            {
                "type": "HKCategoryTypeIdentifierSleepAnalysis",
                "value": "HKCategoryValueSleepAnalysisAsleepREM",
                "startDate": "2024-03-14 01:00:00 -0700",
                "endDate": "2024-03-14 01:30:00 -0700",
            },
            ENTITY_ID,
        )
        assert reading.value is None
        assert reading.metadata == {"category_value": "HKCategoryValueSleepAnalysisAsleepREM"}
        assert reading.end_timestamp == "2024-03-14T01:30:00-07:00"
        assert reading.dedup_key.endswith("|null")
        assert reading.unit == ""

    def test_unsupported_type_skipped(self):
        attrs = {"type": "HKQuantityTypeIdentifierUVExposure", "value": "3", "startDate": "x"}
        assert self.mapper.map_element("Record", attrs, ENTITY_ID) is None

    def test_missing_start_skipped(self):
        attrs = {"type": "HKQuantityTypeIdentifierStepCount", "value": "3"}
        assert self.mapper.map_element("Record", attrs, ENTITY_ID) is None

    def test_missing_type_skipped(self):
        assert self.mapper.map_element("Record", {"startDate": "x"}, ENTITY_ID) is None

    @pytest.mark.parametrize("tag", ["ExportDate", "Me", "MetadataEntry", "ActivitySummary"])
    def test_other_elements_skipped(self, tag):
        assert self.mapper.map_element(tag, {"startDate": "x"}, ENTITY_ID) is None

    def test_maps_workout(self):
        reading = self.mapper.map_element(
            "Workout",
            {
                "workoutActivityType": "HKWorkoutActivityTypeRunning",
                "duration": "32.5",
                "durationUnit": "min",
                "totalEnergyBurned": "310",
                "startDate": "2024-03-14 07:00:00 -0700",
                "endDate": "2024-03-14 07:32:30 -0700",
            },
            ENTITY_ID,
        )
        assert reading.record_type == WORKOUT_RECORD_TYPE
        assert reading.category == Category.WORKOUT
        assert reading.short_name == "Running"
        assert reading.value == 32.5
        assert reading.metadata == {
            "activity_type": "HKWorkoutActivityTypeRunning",
            "energy_burned": 310.0,
        }
        assert reading.dedup_key == (
            "2024-03-14T07:00:00-07:00|Workout|HKWorkoutActivityTypeRunning"
        )

    def test_workout_defaults(self):
        reading = self.mapper.map_element(
            "Workout", {"startDate": "2024-03-14 07:00:00 -0700"}, ENTITY_ID
        )
        assert reading.short_name == "Unknown"
        assert reading.unit == "min"
        assert reading.value is None
        assert reading.metadata["energy_burned"] is None
