"""Apple Health record type → (Category, short name) classification.

Short names are stable across sources; summarizers look metrics up by them.
Record types missing from the table are outside the supported taxonomy and
are skipped by the ingestor without counting them.
"""

from health.domain.models import Category

HEALTH_TYPE_MAP: dict[str, tuple[Category, str]] = {
    # Vitals
    "HKQuantityTypeIdentifierHeartRate": (Category.VITALS, "HeartRate"),
    "HKQuantityTypeIdentifierRestingHeartRate": (Category.VITALS, "RestingHR"),
    "HKQuantityTypeIdentifierWalkingHeartRateAverage": (Category.VITALS, "WalkingHR"),
    "HKQuantityTypeIdentifierHeartRateVariabilitySDNN": (Category.VITALS, "HRV"),
    "HKQuantityTypeIdentifierOxygenSaturation": (Category.VITALS, "SpO2"),
    "HKQuantityTypeIdentifierRespiratoryRate": (Category.VITALS, "RespiratoryRate"),
    "HKQuantityTypeIdentifierBloodPressureSystolic": (Category.VITALS, "BPSystolic"),
    "HKQuantityTypeIdentifierBloodPressureDiastolic": (Category.VITALS, "BPDiastolic"),
    "HKQuantityTypeIdentifierBloodGlucose": (Category.VITALS, "BloodGlucose"),
    "HKQuantityTypeIdentifierBodyTemperature": (Category.VITALS, "BodyTemp"),
    # Activity
    "HKQuantityTypeIdentifierStepCount": (Category.ACTIVITY, "Steps"),
    "HKQuantityTypeIdentifierDistanceWalkingRunning": (Category.ACTIVITY, "Distance"),
    "HKQuantityTypeIdentifierActiveEnergyBurned": (Category.ACTIVITY, "ActiveEnergy"),
    "HKQuantityTypeIdentifierBasalEnergyBurned": (Category.ACTIVITY, "BasalEnergy"),
    "HKQuantityTypeIdentifierFlightsClimbed": (Category.ACTIVITY, "FlightsClimbed"),
    "HKQuantityTypeIdentifierAppleExerciseTime": (Category.ACTIVITY, "ExerciseTime"),
    "HKQuantityTypeIdentifierAppleStandTime": (Category.ACTIVITY, "StandTime"),
    # Sleep
    "HKCategoryTypeIdentifierSleepAnalysis": (Category.SLEEP, "SleepAnalysis"),
    # Body
    "HKQuantityTypeIdentifierBodyMass": (Category.BODY, "Weight"),
    "HKQuantityTypeIdentifierHeight": (Category.BODY, "Height"),
    "HKQuantityTypeIdentifierBodyMassIndex": (Category.BODY, "BMI"),
    "HKQuantityTypeIdentifierBodyFatPercentage": (Category.BODY, "BodyFat"),
    "HKQuantityTypeIdentifierLeanBodyMass": (Category.BODY, "LeanMass"),
    # Nutrition
    "HKQuantityTypeIdentifierDietaryEnergyConsumed": (Category.NUTRITION, "Calories"),
    "HKQuantityTypeIdentifierDietaryProtein": (Category.NUTRITION, "Protein"),
    "HKQuantityTypeIdentifierDietaryCarbohydrates": (Category.NUTRITION, "Carbs"),
    "HKQuantityTypeIdentifierDietaryFatTotal": (Category.NUTRITION, "Fat"),
    "HKQuantityTypeIdentifierDietaryWater": (Category.NUTRITION, "Water"),
    # Fitness
    "HKQuantityTypeIdentifierVO2Max": (Category.FITNESS, "VO2Max"),
    # Mindfulness
    "HKCategoryTypeIdentifierMindfulSession": (Category.MINDFULNESS, "MindfulSession"),
}

# Types that accumulate over a day (summed)
SUM_TYPES = frozenset(
    {
        "HKQuantityTypeIdentifierStepCount",
        "HKQuantityTypeIdentifierDistanceWalkingRunning",
        "HKQuantityTypeIdentifierActiveEnergyBurned",
        "HKQuantityTypeIdentifierBasalEnergyBurned",
        "HKQuantityTypeIdentifierFlightsClimbed",
        "HKQuantityTypeIdentifierAppleExerciseTime",
        "HKQuantityTypeIdentifierAppleStandTime",
        "HKQuantityTypeIdentifierDietaryEnergyConsumed",
        "HKQuantityTypeIdentifierDietaryProtein",
        "HKQuantityTypeIdentifierDietaryCarbohydrates",
        "HKQuantityTypeIdentifierDietaryFatTotal",
        "HKQuantityTypeIdentifierDietaryWater",
    }
)

# Types where occurrences are counted
COUNT_TYPES = frozenset(
    {
        "HKCategoryTypeIdentifierSleepAnalysis",
        "HKCategoryTypeIdentifierMindfulSession",
    }
)

CATEGORY_DESCRIPTIONS: dict[Category, str] = {
    Category.VITALS: "Heart rate, HRV, blood pressure, SpO2, respiratory rate",
    Category.ACTIVITY: "Steps, distance, active energy, exercise time, flights climbed",
    Category.SLEEP: "Sleep analysis, sleep stages, sleep duration",
    Category.BODY: "Weight, height, BMI, body fat percentage",
    Category.NUTRITION: "Calories, protein, carbs, fat, water intake",
    Category.FITNESS: "VO2 Max, readiness scores",
    Category.MINDFULNESS: "Mindful sessions, meditation",
    Category.WORKOUT: "Exercise sessions, workout details",
    Category.OTHER: "Documents, clinical photos, misc",
}


def classify(record_type: str) -> tuple[Category, str] | None:
    """Return (category, short_name) for a supported record type, else None."""
    return HEALTH_TYPE_MAP.get(record_type)
