# clinic_core/growth/analysis.py
"""
Pure growth calculations: age, BMI, percentile interpolation, Z-score and classification.

Nothing here touches the database. Reference rows are anything exposing p3, p15, p50,
p85 and p97 attributes (WHOPercentileRow instances or PercentileRow below).

The Z-score is the quick (value - p50) / ((p85 - p15) / 2) approximation, not the
WHO LMS method; values far from the median will differ from official Z-scores.
"""
from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Mapping, Optional

WEIGHT = "weight"
HEIGHT = "height"
BMI = "bmi"
HEAD_CIRCUMFERENCE = "head_circumference"
TEMPERATURE = "temperature"

INDICATORS = (WEIGHT, HEIGHT, BMI, HEAD_CIRCUMFERENCE)

PERCENTILE_BREAKPOINTS = (3, 15, 50, 85, 97)
NEUTRAL_PERCENTILE = 50.0

# head circumference references only cover early childhood
HEAD_CIRCUMFERENCE_MAX_AGE_MONTHS = 36

MAX_AGE_MONTHS = 240
MAX_WEIGHT_KG = 200
MIN_HEIGHT_CM = 30
MAX_HEIGHT_CM = 250
# stored bmi column holds at most 999.99
MAX_BMI = 150
MAX_HEAD_CIRCUMFERENCE_CM = 70

# status codes
NORMAL = "normal"
UNDERWEIGHT = "underweight"
OVERWEIGHT = "overweight"
OBESITY = "obesity"
SHORT_STATURE = "short_stature"
TALL_STATURE = "tall_stature"
MICROCEPHALY = "microcephaly"
MACROCEPHALY = "macrocephaly"


@dataclass(frozen=True)
class PercentileRow:
    p3: float
    p15: float
    p50: float
    p85: float
    p97: float


@dataclass(frozen=True)
class GrowthSettings:
    """
    The subset of a business unit's somatometry configuration the analyzer needs.
    Defaults match the "standard" preset.
    """
    bmi_underweight_threshold: float = 15.0
    bmi_overweight_threshold: float = 25.0
    bmi_obesity_threshold: float = 30.0
    show_growth_alerts: bool = True
    alert_percentile_below: int = 3
    alert_percentile_above: int = 97
    require_head_circumference_under_24m: bool = True
    use_who_standards: bool = True
    use_cdc_standards: bool = False
    allow_manual_age_override: bool = False

    @property
    def percentile_source(self) -> str:
        if self.use_who_standards and self.use_cdc_standards:
            return "BOTH"
        if self.use_cdc_standards:
            return "CDC"
        return "WHO"


@dataclass(frozen=True)
class DetailedAge:
    years: int
    months: int
    days: int
    total_months: int
    total_days: int


@dataclass(frozen=True)
class IndicatorResult:
    value: Optional[float]
    percentile: Optional[float]
    z_score: Optional[float]
    status: str


@dataclass(frozen=True)
class ValueRange:
    min: float
    max: float
    normal_min: float
    normal_max: float


@dataclass
class GrowthAnalysis:
    age_months: int
    bmi: float
    indicators: dict = field(default_factory=dict)
    alerts: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "age_months": self.age_months,
            "bmi": self.bmi,
            "indicators": {k: asdict(v) for k, v in self.indicators.items()},
            "alerts": list(self.alerts),
        }


# ---------------------------------------------------------------------------
# Age and BMI
# ---------------------------------------------------------------------------

def age_in_months(birth_date: date, measurement_date: date) -> int:
    """
    Completed months between the two dates; never negative.
    """
    months = (measurement_date.year - birth_date.year) * 12 + (measurement_date.month - birth_date.month)
    if measurement_date.day < birth_date.day:
        months -= 1
    return max(0, months)


def _add_months(d: date, months: int) -> date:
    year = d.year + (d.month - 1 + months) // 12
    month = (d.month - 1 + months) % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def detailed_age(birth_date: date, measurement_date: date) -> DetailedAge:
    total_days = max(0, (measurement_date - birth_date).days)
    total_months = age_in_months(birth_date, measurement_date)
    if total_days == 0:
        days = 0
    else:
        days = max(0, (measurement_date - _add_months(birth_date, total_months)).days)
    return DetailedAge(
        years=total_months // 12,
        months=total_months % 12,
        days=days,
        total_months=total_months,
        total_days=total_days,
    )


def calculate_bmi(weight_kg, height_cm) -> float:
    """
    kg / m^2 rounded to 2 decimals; 0.0 when either input is missing or not positive.
    """
    if weight_kg is None or height_cm is None:
        return 0.0
    weight = float(weight_kg)
    height = float(height_cm)
    if weight <= 0 or height <= 0:
        return 0.0
    height_m = height / 100.0
    return round(weight / (height_m ** 2), 2)


# ---------------------------------------------------------------------------
# Percentiles
# ---------------------------------------------------------------------------

def interpolate(value: float, x1: float, x2: float, y1: float, y2: float) -> float:
    if x2 == x1:
        return float(y2)
    return y1 + (value - x1) / (x2 - x1) * (y2 - y1)


def _breakpoints(row) -> list[tuple[float, int]]:
    return [
        (float(row.p3), 3),
        (float(row.p15), 15),
        (float(row.p50), 50),
        (float(row.p85), 85),
        (float(row.p97), 97),
    ]


def percentile_of(value, row) -> float:
    """
    Piecewise-linear percentile between the bracketing reference points.
    Clamps to 3 below p3 and 97 above p97; a missing row is neutral (50).
    """
    if row is None:
        return NEUTRAL_PERCENTILE

    v = float(value)
    points = _breakpoints(row)

    if v <= points[0][0]:
        return 3.0

    for (x1, y1), (x2, y2) in zip(points, points[1:]):
        if v <= x2:
            return interpolate(v, x1, x2, y1, y2)

    return 97.0


def z_score_approx(value, row) -> float:
    if row is None:
        return 0.0
    spread = (float(row.p85) - float(row.p15)) / 2
    if spread == 0:
        return 0.0
    return round((float(value) - float(row.p50)) / spread, 2)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_weight(percentile: float) -> str:
    if percentile < 3:
        return UNDERWEIGHT
    if percentile > 97:
        return OVERWEIGHT
    return NORMAL


def classify_height(percentile: float) -> str:
    if percentile < 3:
        return SHORT_STATURE
    if percentile > 97:
        return TALL_STATURE
    return NORMAL


def classify_bmi(percentile: float) -> str:
    if percentile < 15:
        return UNDERWEIGHT
    if percentile >= 97:
        return OBESITY
    if percentile >= 85:
        return OVERWEIGHT
    return NORMAL


def classify_bmi_value(bmi: float, settings: GrowthSettings) -> str:
    """
    Fallback when no BMI-for-age reference exists: classify the raw BMI against
    the business unit thresholds.
    """
    if bmi <= 0:
        return NORMAL
    if bmi < settings.bmi_underweight_threshold:
        return UNDERWEIGHT
    if bmi >= settings.bmi_obesity_threshold:
        return OBESITY
    if bmi >= settings.bmi_overweight_threshold:
        return OVERWEIGHT
    return NORMAL


def classify_head_circumference(percentile: float) -> str:
    if percentile < 3:
        return MICROCEPHALY
    if percentile > 97:
        return MACROCEPHALY
    return NORMAL


CLASSIFIERS = {
    WEIGHT: classify_weight,
    HEIGHT: classify_height,
    BMI: classify_bmi,
    HEAD_CIRCUMFERENCE: classify_head_circumference,
}

ALERT_LABELS = {
    WEIGHT: "Weight",
    HEIGHT: "Height",
    BMI: "BMI",
    HEAD_CIRCUMFERENCE: "Head circumference",
}


def band_percentile(value, row) -> float:
    """
    percentile_of, except values outside the p3..p97 reference band map to 0 / 100.
    Clamped percentiles sit exactly on 3 and 97, which the strict classification
    thresholds would otherwise read as in range.
    """
    v = float(value)
    if v < float(row.p3):
        return 0.0
    if v > float(row.p97):
        return 100.0
    return percentile_of(v, row)


def analyze_indicator(indicator: str, value, row) -> IndicatorResult:
    if value is None:
        return IndicatorResult(value=None, percentile=None, z_score=None, status=NORMAL)
    v = float(value)
    if row is None:
        return IndicatorResult(value=v, percentile=None, z_score=None, status=NORMAL)

    # reported percentile stays clamped to 3..97; only the status uses the band value
    pct = percentile_of(v, row)
    return IndicatorResult(
        value=v,
        percentile=round(pct, 1),
        z_score=z_score_approx(v, row),
        status=CLASSIFIERS[indicator](band_percentile(v, row)),
    )


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    return f"{n}" + {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def _alerts_for(
    results: Mapping[str, IndicatorResult],
    rows: Mapping[str, object],
    settings: GrowthSettings,
) -> list[str]:
    if not settings.show_growth_alerts:
        return []

    alerts = []
    for indicator in INDICATORS:
        result = results.get(indicator)
        row = rows.get(indicator)
        if result is None or result.value is None or row is None:
            continue
        pct = band_percentile(result.value, row)
        label = ALERT_LABELS[indicator]
        if pct < settings.alert_percentile_below:
            alerts.append(f"{label} below the {_ordinal(settings.alert_percentile_below)} percentile for age.")
        elif pct > settings.alert_percentile_above:
            alerts.append(f"{label} above the {_ordinal(settings.alert_percentile_above)} percentile for age.")

    bmi_result = results.get(BMI)
    if bmi_result is not None and bmi_result.percentile is None and bmi_result.status != NORMAL:
        alerts.append(f"BMI {bmi_result.value} is in the {bmi_result.status} range.")
    return alerts


def analyze_measurement(
    *,
    age_months: int,
    weight=None,
    height=None,
    head_circumference=None,
    rows: Mapping[str, object],
    settings: GrowthSettings | None = None,
) -> GrowthAnalysis:
    """
    Percentile, Z-score and status for every indicator with a value.
    A missing reference row never fails the analysis; that indicator just has no percentile.
    """
    settings = settings or GrowthSettings()
    bmi = calculate_bmi(weight, height)

    results: dict[str, IndicatorResult] = {
        WEIGHT: analyze_indicator(WEIGHT, weight, rows.get(WEIGHT)),
        HEIGHT: analyze_indicator(HEIGHT, height, rows.get(HEIGHT)),
    }

    bmi_value = bmi if bmi > 0 else None
    bmi_result = analyze_indicator(BMI, bmi_value, rows.get(BMI))
    if bmi_value is not None and rows.get(BMI) is None:
        bmi_result = IndicatorResult(
            value=bmi_value,
            percentile=None,
            z_score=None,
            status=classify_bmi_value(bmi_value, settings),
        )
    results[BMI] = bmi_result

    if head_circumference is not None and age_months <= HEAD_CIRCUMFERENCE_MAX_AGE_MONTHS:
        results[HEAD_CIRCUMFERENCE] = analyze_indicator(
            HEAD_CIRCUMFERENCE, head_circumference, rows.get(HEAD_CIRCUMFERENCE)
        )

    return GrowthAnalysis(
        age_months=age_months,
        bmi=bmi,
        indicators=results,
        alerts=_alerts_for(results, rows, settings),
    )


# ---------------------------------------------------------------------------
# Form support
# ---------------------------------------------------------------------------

def _range_from_row(row, low_factor: float, high_factor: float) -> ValueRange:
    return ValueRange(
        min=round(float(row.p3) * low_factor, 1),
        max=round(float(row.p97) * high_factor, 1),
        normal_min=round(float(row.p15), 1),
        normal_max=round(float(row.p85), 1),
    )


def slider_ranges(age_months: int, rows: Mapping[str, object]) -> dict[str, ValueRange]:
    """
    Input bounds for the measurement form. Missing reference rows fall back to fixed
    neutral ranges instead of failing.
    """
    weight_row = rows.get(WEIGHT)
    height_row = rows.get(HEIGHT)
    head_row = rows.get(HEAD_CIRCUMFERENCE)

    if weight_row is not None:
        weight = _range_from_row(weight_row, 0.8, 1.2)
    else:
        weight = ValueRange(min=2.0, max=30.0, normal_min=8.0, normal_max=16.0)

    if height_row is not None:
        height = _range_from_row(height_row, 0.9, 1.1)
    else:
        height = ValueRange(min=40.0, max=120.0, normal_min=70.0, normal_max=110.0)

    if head_row is not None and age_months <= HEAD_CIRCUMFERENCE_MAX_AGE_MONTHS:
        head = _range_from_row(head_row, 0.9, 1.1)
    elif age_months <= HEAD_CIRCUMFERENCE_MAX_AGE_MONTHS:
        head = ValueRange(min=30.0, max=60.0, normal_min=40.0, normal_max=52.0)
    else:
        head = ValueRange(min=45.0, max=65.0, normal_min=50.0, normal_max=58.0)

    return {
        WEIGHT: weight,
        HEIGHT: height,
        HEAD_CIRCUMFERENCE: head,
        TEMPERATURE: ValueRange(min=30.0, max=45.0, normal_min=34.7, normal_max=38.0),
    }


def validate_measurement(
    *,
    age_months: int,
    weight=None,
    height=None,
    head_circumference=None,
    settings: GrowthSettings | None = None,
) -> dict[str, str]:
    """
    Returns {field: message} for every out-of-range value; empty when the measurement is acceptable.
    """
    settings = settings or GrowthSettings()
    errors: dict[str, str] = {}

    if weight is None or not 0 < float(weight) <= MAX_WEIGHT_KG:
        errors[WEIGHT] = f"Weight must be greater than 0 and at most {MAX_WEIGHT_KG} kg."
    if height is None or not MIN_HEIGHT_CM <= float(height) <= MAX_HEIGHT_CM:
        errors[HEIGHT] = f"Height must be between {MIN_HEIGHT_CM} and {MAX_HEIGHT_CM} cm."
    if WEIGHT not in errors and HEIGHT not in errors and calculate_bmi(weight, height) > MAX_BMI:
        errors[BMI] = f"Weight and height give a BMI above {MAX_BMI}; check the measurement."
    if head_circumference is not None and not 0 < float(head_circumference) <= MAX_HEAD_CIRCUMFERENCE_CM:
        errors[HEAD_CIRCUMFERENCE] = (
            f"Head circumference must be greater than 0 and at most {MAX_HEAD_CIRCUMFERENCE_CM} cm."
        )
    if not 0 <= age_months <= MAX_AGE_MONTHS:
        errors["age_months"] = f"Age must be between 0 and {MAX_AGE_MONTHS} months."
    if settings.require_head_circumference_under_24m and age_months < 24 and head_circumference is None:
        errors[HEAD_CIRCUMFERENCE] = "Head circumference is required for children under 24 months."

    return errors
