import datetime

import pytest

from clinic_core.growth import analysis
from clinic_core.growth.analysis import GrowthSettings, PercentileRow

ROW = PercentileRow(p3=10.0, p15=11.0, p50=12.0, p85=13.0, p97=14.0)


# ---------------------------------------------------------------------------
# Age / BMI
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "birth, measured, expected",
    [
        (datetime.date(2020, 1, 15), datetime.date(2021, 1, 15), 12),
        (datetime.date(2020, 1, 15), datetime.date(2021, 1, 14), 11),
        (datetime.date(2020, 1, 31), datetime.date(2020, 2, 29), 0),
        (datetime.date(2020, 1, 31), datetime.date(2020, 3, 31), 2),
        (datetime.date(2020, 5, 1), datetime.date(2020, 4, 1), 0),
    ],
)
def test_age_in_months(birth, measured, expected):
    assert analysis.age_in_months(birth, measured) == expected


def test_age_in_months_is_non_negative_and_monotonic():
    birth = datetime.date(2019, 1, 31)
    previous = 0
    day = birth - datetime.timedelta(days=40)
    while day < datetime.date(2021, 6, 1):
        months = analysis.age_in_months(birth, day)
        assert months >= 0
        assert months >= previous
        previous = months
        day += datetime.timedelta(days=1)


def test_detailed_age():
    age = analysis.detailed_age(datetime.date(2020, 1, 15), datetime.date(2021, 3, 20))
    assert (age.years, age.months, age.days) == (1, 2, 5)
    assert age.total_months == 14
    assert age.total_days == 430


def test_bmi():
    assert analysis.calculate_bmi(20, 100) == 20.0
    assert analysis.calculate_bmi(9.5, 72.3) == 18.17
    assert analysis.calculate_bmi(0, 100) == 0.0
    assert analysis.calculate_bmi(20, None) == 0.0


# ---------------------------------------------------------------------------
# Percentiles / Z
# ---------------------------------------------------------------------------

def test_median_is_fiftieth_percentile():
    assert analysis.percentile_of(12.0, ROW) == 50.0


@pytest.mark.parametrize("value", [10.0, 9.0, 0.5])
def test_below_p3_clamps_to_3(value):
    assert analysis.percentile_of(value, ROW) == 3.0


@pytest.mark.parametrize("value", [14.0, 14.5, 40.0])
def test_above_p97_clamps_to_97(value):
    assert analysis.percentile_of(value, ROW) == 97.0


def test_interpolates_between_bracketing_points():
    assert analysis.percentile_of(11.5, ROW) == pytest.approx(32.5)
    assert analysis.percentile_of(13.5, ROW) == pytest.approx(91.0)
    assert analysis.percentile_of(10.5, ROW) == pytest.approx(9.0)


def test_missing_row_is_neutral():
    assert analysis.percentile_of(99, None) == 50.0
    assert analysis.z_score_approx(99, None) == 0.0


def test_z_score_approximation():
    assert analysis.z_score_approx(13.0, ROW) == 1.0
    assert analysis.z_score_approx(11.0, ROW) == -1.0
    flat = PercentileRow(p3=1, p15=2, p50=2, p85=2, p97=3)
    assert analysis.z_score_approx(5, flat) == 0.0


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def test_classification_thresholds():
    assert analysis.classify_weight(2.9) == analysis.UNDERWEIGHT
    assert analysis.classify_weight(50) == analysis.NORMAL
    assert analysis.classify_weight(97.1) == analysis.OVERWEIGHT

    assert analysis.classify_height(1) == analysis.SHORT_STATURE
    assert analysis.classify_height(99) == analysis.TALL_STATURE

    assert analysis.classify_bmi(14.9) == analysis.UNDERWEIGHT
    assert analysis.classify_bmi(85) == analysis.OVERWEIGHT
    assert analysis.classify_bmi(97) == analysis.OBESITY
    assert analysis.classify_bmi(50) == analysis.NORMAL

    assert analysis.classify_head_circumference(2) == analysis.MICROCEPHALY
    assert analysis.classify_head_circumference(98) == analysis.MACROCEPHALY


def test_bmi_value_fallback_uses_settings():
    s = GrowthSettings()
    assert analysis.classify_bmi_value(14, s) == analysis.UNDERWEIGHT
    assert analysis.classify_bmi_value(20, s) == analysis.NORMAL
    assert analysis.classify_bmi_value(26, s) == analysis.OVERWEIGHT
    assert analysis.classify_bmi_value(31, s) == analysis.OBESITY


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------

def test_value_below_reference_band_is_flagged():
    result = analysis.analyze_measurement(
        age_months=12,
        weight=9.0,
        height=12.0,
        rows={analysis.WEIGHT: ROW, analysis.HEIGHT: ROW},
    )
    weight = result.indicators[analysis.WEIGHT]
    assert weight.percentile == 3.0
    assert weight.status == analysis.UNDERWEIGHT
    assert "Weight below the 3rd percentile for age." in result.alerts
    assert result.indicators[analysis.HEIGHT].status == analysis.NORMAL


def test_missing_rows_do_not_fail():
    result = analysis.analyze_measurement(age_months=12, weight=9.5, height=75, rows={})
    weight = result.indicators[analysis.WEIGHT]
    assert weight.percentile is None
    assert weight.z_score is None
    assert weight.status == analysis.NORMAL
    assert result.bmi == analysis.calculate_bmi(9.5, 75)


def test_alerts_can_be_switched_off():
    result = analysis.analyze_measurement(
        age_months=12,
        weight=20.0,
        height=12.0,
        rows={analysis.WEIGHT: ROW},
        settings=GrowthSettings(show_growth_alerts=False),
    )
    assert result.indicators[analysis.WEIGHT].status == analysis.OVERWEIGHT
    assert result.alerts == []


def test_head_circumference_only_analysed_up_to_36_months():
    rows = {analysis.HEAD_CIRCUMFERENCE: ROW}
    young = analysis.analyze_measurement(age_months=36, weight=10, height=90, head_circumference=12, rows=rows)
    older = analysis.analyze_measurement(age_months=37, weight=10, height=90, head_circumference=12, rows=rows)
    assert young.indicators[analysis.HEAD_CIRCUMFERENCE].percentile == 50.0
    assert analysis.HEAD_CIRCUMFERENCE not in older.indicators


def test_as_dict_shape():
    data = analysis.analyze_measurement(age_months=12, weight=12, height=12, rows={analysis.WEIGHT: ROW}).as_dict()
    assert set(data) == {"age_months", "bmi", "indicators", "alerts"}
    assert data["indicators"]["weight"]["percentile"] == 50.0


# ---------------------------------------------------------------------------
# Form support
# ---------------------------------------------------------------------------

def test_slider_ranges_from_reference():
    ranges = analysis.slider_ranges(12, {analysis.WEIGHT: ROW, analysis.HEIGHT: ROW})
    w = ranges[analysis.WEIGHT]
    assert (w.min, w.max, w.normal_min, w.normal_max) == (8.0, 16.8, 11.0, 13.0)
    h = ranges[analysis.HEIGHT]
    assert (h.min, h.max) == (9.0, 15.4)


def test_slider_ranges_defaults_without_reference():
    ranges = analysis.slider_ranges(48, {})
    assert ranges[analysis.WEIGHT].min == 2.0
    assert ranges[analysis.HEIGHT].max == 120.0
    assert ranges[analysis.HEAD_CIRCUMFERENCE].min == 45.0
    assert ranges[analysis.TEMPERATURE].normal_max == 38.0


def test_validate_measurement_limits():
    assert analysis.validate_measurement(age_months=30, weight=12, height=90) == {}

    errors = analysis.validate_measurement(age_months=300, weight=0, height=260, head_circumference=80)
    assert set(errors) == {"weight", "height", "head_circumference", "age_months"}


def test_head_circumference_required_under_24_months():
    errors = analysis.validate_measurement(age_months=10, weight=9, height=72)
    assert "head_circumference" in errors

    relaxed = GrowthSettings(require_head_circumference_under_24m=False)
    assert analysis.validate_measurement(age_months=10, weight=9, height=72, settings=relaxed) == {}


def test_validate_measurement_rejects_implausible_height_and_bmi():
    errors = analysis.validate_measurement(age_months=30, weight=12, height=5)
    assert set(errors) == {"height"}

    errors = analysis.validate_measurement(age_months=30, weight=150, height=40)
    assert set(errors) == {"bmi"}
