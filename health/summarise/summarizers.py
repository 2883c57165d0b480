"""Category summarizers: one day's grouped readings → (narrative, digest).

Every summarizer is a pure function of the day's metrics (keyed by short
name) and the trailing weekly baseline. Narratives are sentences joined
with ". " and always end in a period; the digest holds the rounded numbers.

Rules per category:
- activity: sums; day label from steps (>12000 Active, >6000 Moderate, >0 Light, else Rest)
- vitals: means (HeartRate reports its range); SpO2 accepts fractions or percent
- sleep: summed duration, or the number of segments for category-only exports
- body: most recent value wins; weight compared to the weekly average
- nutrition: sums; water reported in liters
- workout: one clause per session
- fitness: most recent VO2 Max
- mindfulness: session count and total duration
- anything else: per-metric average with unit and sample count
"""

from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import Any

from health.domain.models import Category, DayMetric, WeeklyBaseline
from health.summarise.formatting import (
    fmt,
    fmt_duration,
    join_sentences,
    relative_context,
    round_half_away,
    round_int,
    to_percent,
)

Metrics = dict[str, DayMetric]
Baseline = dict[str, WeeklyBaseline]
SummaryResult = tuple[str, dict[str, Any]]
Summarizer = Callable[[Metrics, Baseline], SummaryResult]

_SLEEP_STAGE_PREFIX = "HKCategoryValueSleepAnalysis"


def _total(metric: DayMetric | None) -> float:
    if metric is None:
        return 0.0
    return sum(metric.values)


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _latest(metric: DayMetric | None) -> float | None:
    """Last value in timestamp order, for point-in-time metrics."""
    if metric is None or not metric.values:
        return None
    return metric.values[-1]


def _span_minutes(start: str | None, end: str | None) -> float:
    if not start or not end:
        return 0.0
    try:
        delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
    except (ValueError, TypeError):
        # TypeError: one side naive, the other offset-aware
        return 0.0
    return max(delta.total_seconds() / 60, 0.0)


def summarize_activity(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    steps = _total(metrics.get("Steps"))
    distance = _total(metrics.get("Distance"))
    flights = _total(metrics.get("FlightsClimbed"))
    exercise = _total(metrics.get("ExerciseTime"))
    active_energy = _total(metrics.get("ActiveEnergy"))
    basal_energy = _total(metrics.get("BasalEnergy"))
    stand_time = _total(metrics.get("StandTime"))

    if steps > 12000:
        label = "Active day"
    elif steps > 6000:
        label = "Moderate day"
    elif steps > 0:
        label = "Light day"
    else:
        label = "Rest day"

    parts = [label]
    if steps > 0:
        s = f"{fmt(steps)} steps"
        if distance > 0:
            s += f" ({fmt(distance, 1)} km)"
        s += relative_context("Steps", steps, baseline)
        parts.append(s)
    if flights > 0:
        parts.append(f"{fmt(flights)} flights climbed")
    if exercise > 0:
        parts.append(f"Exercise: {fmt_duration(exercise)}")
    if active_energy > 0:
        parts.append(f"Active energy: {fmt(active_energy)} kcal")
    if stand_time > 0:
        parts.append(f"Standing: {fmt_duration(stand_time)}")
    if basal_energy > 0:
        parts.append(f"Basal: {fmt(basal_energy)} kcal")

    data: dict[str, Any] = {}
    if steps > 0:
        data["steps"] = round_int(steps)
    if distance > 0:
        data["distance_km"] = round_half_away(distance, 1)
    if flights > 0:
        data["flights"] = round_int(flights)
    if exercise > 0:
        data["exercise_min"] = round_int(exercise)
    if active_energy > 0:
        data["active_energy_kcal"] = round_int(active_energy)
    if basal_energy > 0:
        data["basal_energy_kcal"] = round_int(basal_energy)
    if stand_time > 0:
        data["stand_time_min"] = round_int(stand_time)

    return join_sentences(parts), data


def summarize_vitals(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    parts: list[str] = []
    data: dict[str, Any] = {}

    resting = metrics.get("RestingHR")
    if resting and resting.values:
        avg = _mean(resting.values)
        s = f"Resting heart rate: {fmt(avg)} bpm"
        ctx = baseline.get("RestingHR")
        if ctx and ctx.sample_count >= 3:
            if avg <= ctx.minimum:
                s += " (lowest this week)"
            elif avg >= ctx.maximum:
                s += " (highest this week)"
            else:
                s += f" (weekly avg {fmt(ctx.average)})"
        parts.append(s)
        data["resting_hr_bpm"] = round_int(avg)

    hr = metrics.get("HeartRate")
    if hr and hr.values:
        lo, hi = min(hr.values), max(hr.values)
        parts.append(f"Heart rate range: {fmt(lo)}-{fmt(hi)} bpm")
        data["hr_min"] = round_int(lo)
        data["hr_max"] = round_int(hi)

    hrv = metrics.get("HRV")
    if hrv and hrv.values:
        avg = _mean(hrv.values)
        parts.append(f"HRV: {fmt(avg)}ms (SDNN)")
        data["hrv_ms"] = round_int(avg)

    spo2 = metrics.get("SpO2")
    if spo2 and spo2.values:
        pct = to_percent(_mean(spo2.values))
        parts.append(f"SpO2: {fmt(pct)}%")
        data["spo2_pct"] = round_int(pct)

    resp = metrics.get("RespiratoryRate")
    if resp and resp.values:
        avg = _mean(resp.values)
        parts.append(f"Respiratory rate: {fmt(avg, 1)} breaths/min")
        data["resp_rate"] = round_half_away(avg, 1)

    return join_sentences(parts), data


def summarize_sleep(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    sleep = metrics.get("SleepAnalysis")
    if sleep is None:
        return "No sleep data recorded.", {}

    data: dict[str, Any] = {}
    total_min = _total(sleep)
    if total_min > 0:
        text = f"Sleep: {fmt_duration(total_min)}"
        data["total_sleep_min"] = round_int(total_min)
        data["total_sleep_hours"] = round_half_away(total_min / 60, 1)
    else:
        # Category-only exports: every reading is one segment
        segments = len(sleep.end_timestamps)
        text = f"Sleep: {segments} sleep segments recorded"
        data["segments"] = segments

    if sleep.labels:
        stages = Counter(label.removeprefix(_SLEEP_STAGE_PREFIX) for label in sleep.labels)
        data["stages"] = dict(sorted(stages.items()))

    return join_sentences([text]), data


def summarize_body(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    parts: list[str] = []
    data: dict[str, Any] = {}

    weight_metric = metrics.get("Weight")
    weight = _latest(weight_metric)
    if weight is not None:
        unit = weight_metric.unit or "kg"
        s = f"Weight: {fmt(weight, 1)} {unit}"
        ctx = baseline.get("Weight")
        if ctx and ctx.sample_count >= 2:
            diff = weight - ctx.average
            if abs(diff) > 0.1:
                direction = "up" if diff > 0 else "down"
                s += f" ({direction} {fmt(abs(diff), 1)} from weekly avg)"
        parts.append(s)
        data["weight"] = round_half_away(weight, 1)
        data["weight_unit"] = unit

    bmi = _latest(metrics.get("BMI"))
    if bmi is not None:
        parts.append(f"BMI: {fmt(bmi, 1)}")
        data["bmi"] = round_half_away(bmi, 1)

    body_fat = _latest(metrics.get("BodyFat"))
    if body_fat is not None:
        pct = to_percent(body_fat)
        parts.append(f"Body fat: {fmt(pct, 1)}%")
        data["body_fat_pct"] = round_half_away(pct, 1)

    return join_sentences(parts), data


def summarize_nutrition(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    parts: list[str] = []
    data: dict[str, Any] = {}

    calories = _total(metrics.get("Calories"))
    if calories > 0:
        parts.append(f"Intake: {fmt(calories)} kcal")
        data["calories_kcal"] = round_int(calories)

    macros: list[str] = []
    for short_name, label, key in (
        ("Protein", "Protein", "protein_g"),
        ("Carbs", "Carbs", "carbs_g"),
        ("Fat", "Fat", "fat_g"),
    ):
        grams = _total(metrics.get(short_name))
        if grams > 0:
            macros.append(f"{label}: {fmt(grams)}g")
            data[key] = round_int(grams)
    if macros:
        parts.append(", ".join(macros))

    water = _total(metrics.get("Water"))
    if water > 0:
        parts.append(f"Water: {fmt(water / 1000, 1)}L")
        data["water_ml"] = round_int(water)

    return join_sentences(parts), data


def summarize_workout(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    parts: list[str] = []
    workouts: list[dict[str, Any]] = []

    for name, metric in metrics.items():
        for duration, meta in zip(metric.values, metric.metadata):
            parts.append(f"Workout: {name}, {fmt_duration(duration)}")
            entry: dict[str, Any] = {"name": name, "duration_min": round_int(duration)}
            energy = meta.get("energy_burned")
            if energy is not None:
                entry["energy_kcal"] = round_int(energy)
            workouts.append(entry)

    data: dict[str, Any] = {"workouts": workouts, "count": len(workouts)}
    if not parts:
        return "No workout data.", data
    return join_sentences(parts), data


def summarize_fitness(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    vo2 = _latest(metrics.get("VO2Max"))
    if vo2 is None:
        return "Fitness data recorded.", {}
    text = f"VO2 Max: {fmt(vo2, 1)} mL/kg/min" + relative_context("VO2Max", vo2, baseline)
    return join_sentences([text]), {"vo2max": round_half_away(vo2, 1)}


def summarize_mindfulness(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    session = metrics.get("MindfulSession")
    count = len(session.end_timestamps) if session else 0
    if session is None or count == 0:
        return "No mindfulness sessions recorded.", {"sessions": 0, "total_min": 0}

    if session.values:
        total_min = _total(session)
    else:
        # Sessions are usually exported without a value; use their time spans
        total_min = sum(
            _span_minutes(start, end)
            for start, end in zip(session.timestamps, session.end_timestamps)
        )

    plural = "s" if count > 1 else ""
    text = f"Mindfulness: {count} session{plural}, {fmt_duration(total_min)} total."
    return text, {"sessions": count, "total_min": round_int(total_min)}


def summarize_generic(metrics: Metrics, baseline: Baseline) -> SummaryResult:
    parts: list[str] = []
    data: dict[str, Any] = {}
    for name, metric in metrics.items():
        if not metric.values:
            continue
        avg = _mean(metric.values)
        value_text = f"{fmt(avg, 1)} {metric.unit}".rstrip()
        parts.append(f"{name}: {value_text} ({len(metric.values)} readings)")
        data[name] = {"avg": round_half_away(avg, 1), "count": len(metric.values)}
    return join_sentences(parts), data


SUMMARIZERS: dict[Category, Summarizer] = {
    Category.ACTIVITY: summarize_activity,
    Category.VITALS: summarize_vitals,
    Category.SLEEP: summarize_sleep,
    Category.BODY: summarize_body,
    Category.NUTRITION: summarize_nutrition,
    Category.WORKOUT: summarize_workout,
    Category.FITNESS: summarize_fitness,
    Category.MINDFULNESS: summarize_mindfulness,
    Category.OTHER: summarize_generic,
}


def summarize(category: Category, metrics: Metrics, baseline: Baseline) -> SummaryResult:
    """Run the summarizer bound to ``category``; unknown categories get the generic one."""
    return SUMMARIZERS.get(category, summarize_generic)(metrics, baseline)
