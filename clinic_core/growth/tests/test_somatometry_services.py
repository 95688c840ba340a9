import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from clinic_core.audit.models import AuditEvent
from clinic_core.growth import analysis
from clinic_core.growth.models import SomatometryConfig, SomatometryRecord
from clinic_core.growth.selectors import ReferenceSelector, SomatometrySelector
from clinic_core.growth.services import SomatometryConfigService, SomatometryService

pytestmark = pytest.mark.django_db


def _create(business_unit, patient, user, **overrides):
    data = dict(
        business_unit_id=business_unit.id,
        actor_user_id=user.id,
        patient_id=patient.id,
        measurement_date=datetime.date.today(),
        weight=Decimal("14.00"),
        height=Decimal("96.00"),
    )
    data.update(overrides)
    return SomatometryService.create(**data)


def test_create_derives_age_and_bmi(business_unit, patient, user):
    record = _create(business_unit, patient, user)
    assert record.age_months == analysis.age_in_months(patient.date_of_birth, datetime.date.today())
    assert record.bmi == Decimal(str(analysis.calculate_bmi(14, 96)))
    assert record.measured_by_id == user.id
    assert AuditEvent.objects.filter(entity_id=record.id, event_code="somatometry.created").exists()


def test_create_rejects_out_of_range_values(business_unit, patient, user):
    with pytest.raises(ValidationError) as exc:
        _create(business_unit, patient, user, weight=Decimal("0"), height=Decimal("300"))
    assert {"weight", "height"} <= set(exc.value.message_dict)


def test_create_rejects_future_date(business_unit, patient, user):
    with pytest.raises(ValidationError):
        _create(business_unit, patient, user, measurement_date=datetime.date.today() + datetime.timedelta(days=1))


def test_create_requires_date_of_birth(business_unit, patient, user):
    patient.date_of_birth = None
    patient.save()
    with pytest.raises(ValidationError):
        _create(business_unit, patient, user)


def test_infant_needs_head_circumference_unless_config_relaxes_it(business_unit, infant, user):
    with pytest.raises(ValidationError) as exc:
        _create(business_unit, infant, user, weight=Decimal("7.5"), height=Decimal("66"))
    assert "head_circumference" in exc.value.message_dict

    SomatometryConfigService.apply_preset(business_unit_id=business_unit.id, actor_user_id=user.id, preset="liberal")
    record = _create(business_unit, infant, user, weight=Decimal("7.5"), height=Decimal("66"))
    assert record.head_circumference is None


def test_patient_from_other_business_unit_is_rejected(other_business_unit, patient, user):
    with pytest.raises(ValidationError):
        _create(other_business_unit, patient, user)


def test_update_recomputes_bmi(business_unit, patient, user):
    record = _create(business_unit, patient, user)
    record = SomatometryService.update(
        business_unit_id=business_unit.id,
        actor_user_id=user.id,
        record_id=record.id,
        data={"weight": Decimal("16.00"), "bmi": Decimal("99"), "age_months": 1},
    )
    assert record.bmi == Decimal(str(analysis.calculate_bmi(16, 96)))
    assert record.age_months == analysis.age_in_months(patient.date_of_birth, datetime.date.today())


def test_delete_writes_audit(business_unit, patient, user):
    record = _create(business_unit, patient, user)
    record_id = record.id
    SomatometryService.delete(business_unit_id=business_unit.id, actor_user_id=user.id, record_id=record_id)
    assert not SomatometryRecord.objects.filter(id=record_id).exists()
    assert AuditEvent.objects.filter(entity_id=record_id, event_code="somatometry.deleted").exists()


def test_analyze_record_uses_reference_rows(business_unit, patient, user, reference_rows):
    record = _create(business_unit, patient, user)
    result = SomatometryService.analyze_record(record=record)

    assert result.indicators["weight"].percentile == 50.0
    assert result.indicators["weight"].z_score == 0.0
    assert result.indicators["height"].percentile == 50.0
    assert result.indicators["bmi"].percentile is None
    assert result.alerts == []


def test_preview_flags_low_weight(business_unit, patient, reference_rows):
    result = SomatometryService.preview(
        business_unit_id=business_unit.id,
        patient_id=patient.id,
        measurement_date=datetime.date.today(),
        weight=Decimal("10.00"),
        height=Decimal("96.00"),
    )
    assert result.indicators["weight"].status == analysis.UNDERWEIGHT
    assert any(a.startswith("Weight below") for a in result.alerts)
    assert not SomatometryRecord.objects.exists()


def test_growth_statistics_and_trend(business_unit, patient, user):
    today = datetime.date.today()
    _create(business_unit, patient, user, measurement_date=today - datetime.timedelta(days=60))
    _create(business_unit, patient, user, measurement_date=today, weight=Decimal("17.00"))

    stats = SomatometrySelector.growth_statistics(business_unit_id=business_unit.id, patient_id=patient.id)
    assert stats["total_measurements"] == 2
    assert stats["average_weight"] == 15.5
    assert stats["last_measurement"] == today
    assert stats["trend"] == "increasing"


def test_growth_statistics_without_records(business_unit, patient):
    stats = SomatometrySelector.growth_statistics(business_unit_id=business_unit.id, patient_id=patient.id)
    assert stats["total_measurements"] == 0
    assert stats["average_bmi"] is None
    assert stats["trend"] == "stable"


def test_patient_growth_series(business_unit, patient, user):
    _create(business_unit, patient, user)
    series = SomatometrySelector.patient_growth_series(
        business_unit_id=business_unit.id, patient_id=patient.id, indicator="weight"
    )
    assert [p["value"] for p in series] == [14.0]
    assert SomatometrySelector.patient_growth_series(
        business_unit_id=business_unit.id, patient_id=patient.id, indicator="head_circumference"
    ) == []


def test_who_chart_series(reference_rows, patient):
    chart = ReferenceSelector.who_chart(indicator="weight", sex=patient.sex, age_from=0, age_to=240)
    assert chart["ages"] == [reference_rows["age_months"]]
    assert chart["p50"] == [14.0]


def test_who_chart_rejects_inverted_range():
    with pytest.raises(ValidationError):
        ReferenceSelector.who_chart(indicator="weight", sex="F", age_from=10, age_to=5)


def test_slider_ranges_fall_back_without_reference(business_unit, patient):
    data = SomatometryService.slider_ranges(
        business_unit_id=business_unit.id, patient_id=patient.id, measurement_date=datetime.date.today()
    )
    assert data["ranges"]["weight"] == {"min": 2.0, "max": 30.0, "normal_min": 8.0, "normal_max": 16.0}


# -------------------------
# Configuration
# -------------------------

def test_config_defaults_to_standard(business_unit):
    config = SomatometryConfigService.get_or_create(business_unit_id=business_unit.id)
    assert (config.bmi_underweight_threshold, config.bmi_overweight_threshold, config.bmi_obesity_threshold) == (
        15.0,
        25.0,
        30.0,
    )
    assert (config.alert_percentile_below, config.alert_percentile_above) == (3, 97)


def test_config_update_validates_ordering(business_unit, user):
    with pytest.raises(ValidationError):
        SomatometryConfigService.update(
            business_unit_id=business_unit.id,
            actor_user_id=user.id,
            data={"bmi_overweight_threshold": 29.0, "bmi_obesity_threshold": 28.0},
        )


@pytest.mark.parametrize(
    "data",
    [
        {"bmi_underweight_threshold": 9.0},
        {"bmi_overweight_threshold": 31.0},
        {"bmi_obesity_threshold": 41.0},
        {"alert_percentile_below": 4},
        {"alert_percentile_above": 99},
    ],
)
def test_config_update_rejects_out_of_range(business_unit, user, data):
    with pytest.raises(ValidationError):
        SomatometryConfigService.update(business_unit_id=business_unit.id, actor_user_id=user.id, data=data)


def test_config_update_persists(business_unit, user):
    config = SomatometryConfigService.update(
        business_unit_id=business_unit.id,
        actor_user_id=user.id,
        data={"alert_percentile_below": 10, "show_growth_alerts": False},
    )
    config.refresh_from_db()
    assert config.alert_percentile_below == 10
    assert config.show_growth_alerts is False


def test_apply_preset_conservative(business_unit, user):
    config = SomatometryConfigService.apply_preset(
        business_unit_id=business_unit.id, actor_user_id=user.id, preset="conservative"
    )
    assert (config.bmi_overweight_threshold, config.bmi_obesity_threshold) == (23.0, 27.0)
    assert (config.alert_percentile_below, config.alert_percentile_above) == (5, 95)
    assert SomatometryConfig.objects.filter(business_unit_id=business_unit.id).count() == 1


def test_unknown_preset(business_unit, user):
    with pytest.raises(ValidationError):
        SomatometryConfigService.apply_preset(business_unit_id=business_unit.id, actor_user_id=user.id, preset="strict")


def test_create_rejects_bmi_beyond_stored_range(business_unit, patient, user):
    with pytest.raises(ValidationError) as exc:
        _create(business_unit, patient, user, weight=Decimal("150.00"), height=Decimal("40.00"))
    assert "bmi" in exc.value.message_dict
    assert not SomatometryRecord.objects.exists()


def test_update_rejects_bmi_beyond_stored_range(business_unit, patient, user):
    record = _create(business_unit, patient, user)
    with pytest.raises(ValidationError) as exc:
        SomatometryService.update(
            business_unit_id=business_unit.id,
            actor_user_id=user.id,
            record_id=record.id,
            data={"weight": Decimal("150.00"), "height": Decimal("40.00")},
        )
    assert "bmi" in exc.value.message_dict

    record.refresh_from_db()
    assert record.weight == Decimal("14.00")


def test_config_flags_reach_growth_settings(business_unit, user):
    from clinic_core.growth.selectors import growth_settings_for

    config = SomatometryConfigService.get_or_create(business_unit_id=business_unit.id)
    assert (config.use_who_standards, config.use_cdc_standards, config.allow_manual_age_override) == (True, False, False)

    SomatometryConfigService.update(
        business_unit_id=business_unit.id,
        actor_user_id=user.id,
        data={"use_who_standards": False, "use_cdc_standards": True},
    )
    settings = growth_settings_for(business_unit_id=business_unit.id)
    assert settings.use_cdc_standards is True
    assert settings.percentile_source == "CDC"
