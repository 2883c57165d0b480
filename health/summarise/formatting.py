"""Number and duration formatting shared by the category summarizers."""

from decimal import ROUND_HALF_UP, Decimal

from health.domain.models import WeeklyBaseline

# Relative band around the weekly average that gets no annotation
_WEEKLY_BAND = 0.2
_MIN_BASELINE_SAMPLES = 3


def round_half_away(value: float, digits: int = 0) -> float:
    """Round half away from zero (2.5 → 3, -2.5 → -3), unlike round()."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_int(value: float) -> int:
    return int(round_half_away(value))


def fmt(value: float, decimals: int = 0) -> str:
    """Whole numbers get thousands separators; decimals are fixed-point."""
    if decimals == 0:
        return f"{round_int(value):,}"
    return f"{round_half_away(value, decimals):.{decimals}f}"


def fmt_duration(minutes: float) -> str:
    """``"1h 5m"`` from 60 minutes up, else ``"45 min"``."""
    hours, mins = divmod(round_int(minutes), 60)
    if hours == 0:
        return f"{mins} min"
    return f"{hours}h {mins}m"


def to_percent(value: float) -> float:
    """Fractions (<= 1) are scaled to percent; larger values already are percent."""
    return value * 100 if value <= 1 else value


def relative_context(short_name: str, value: float, baseline: dict[str, WeeklyBaseline]) -> str:
    """Annotate a value that is more than 20% off its weekly average."""
    ctx = baseline.get(short_name)
    if ctx is None or ctx.sample_count < _MIN_BASELINE_SAMPLES:
        return ""
    if value > ctx.average * (1 + _WEEKLY_BAND):
        return f" (above weekly avg of {fmt(ctx.average)})"
    if value < ctx.average * (1 - _WEEKLY_BAND):
        return f" (below weekly avg of {fmt(ctx.average)})"
    return ""


def join_sentences(parts: list[str]) -> str:
    return ". ".join(parts) + "."
