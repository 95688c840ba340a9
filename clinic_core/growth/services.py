# clinic_core/growth/services.py
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from clinic_core.audit.services import AuditService
from clinic_core.growth import analysis
from clinic_core.growth.models import SomatometryConfig, SomatometryRecord
from clinic_core.growth.selectors import ReferenceSelector, SomatometrySelector, age_for, growth_settings_for
from clinic_core.patients.models import Patient

logger = logging.getLogger(__name__)


def _patient_in_scope(*, business_unit_id: UUID, patient_id: UUID) -> Patient:
    try:
        return Patient.objects.get(id=patient_id, business_unit_id=business_unit_id)
    except (Patient.DoesNotExist, ValidationError):
        raise ValidationError({"patient_id": "Patient not found in this business unit."})


def _check_measurement_date(patient: Patient, measurement_date: date) -> None:
    if measurement_date > timezone.localdate():
        raise ValidationError({"measurement_date": "Measurement date cannot be in the future."})
    if patient.date_of_birth and measurement_date < patient.date_of_birth:
        raise ValidationError({"measurement_date": "Measurement date cannot be before the date of birth."})


def analyze_for_patient(
    *,
    business_unit_id: UUID,
    patient: Patient,
    age_months: int,
    weight,
    height,
    head_circumference=None,
) -> analysis.GrowthAnalysis:
    rows = ReferenceSelector.rows_for(sex=patient.sex, age_months=age_months)
    return analysis.analyze_measurement(
        age_months=age_months,
        weight=weight,
        height=height,
        head_circumference=head_circumference,
        rows=rows,
        settings=growth_settings_for(business_unit_id=business_unit_id),
    )


class SomatometryService:
    """
    Measurement write-model. age_months and bmi are always derived here from the
    patient's date of birth, the measurement date, weight and height.
    """

    UPDATABLE_FIELDS = {"measurement_date", "weight", "height", "head_circumference", "temperature", "notes"}

    @staticmethod
    def _derive(
        *,
        business_unit_id: UUID,
        patient: Patient,
        measurement_date: date,
        weight,
        height,
        head_circumference,
    ) -> tuple[int, Decimal]:
        _check_measurement_date(patient, measurement_date)
        age_months = age_for(date_of_birth=patient.date_of_birth, measurement_date=measurement_date)

        errors = analysis.validate_measurement(
            age_months=age_months,
            weight=weight,
            height=height,
            head_circumference=head_circumference,
            settings=growth_settings_for(business_unit_id=business_unit_id),
        )
        if errors:
            raise ValidationError(errors)

        bmi = analysis.calculate_bmi(weight, height)
        return age_months, Decimal(str(bmi))

    @staticmethod
    @transaction.atomic
    def create(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        patient_id: UUID,
        measurement_date: date,
        weight,
        height,
        head_circumference=None,
        temperature=None,
        notes: str = "",
    ) -> SomatometryRecord:
        patient = _patient_in_scope(business_unit_id=business_unit_id, patient_id=patient_id)
        age_months, bmi = SomatometryService._derive(
            business_unit_id=business_unit_id,
            patient=patient,
            measurement_date=measurement_date,
            weight=weight,
            height=height,
            head_circumference=head_circumference,
        )

        record = SomatometryRecord.objects.create(
            business_unit_id=business_unit_id,
            patient=patient,
            measurement_date=measurement_date,
            weight=weight,
            height=height,
            head_circumference=head_circumference,
            temperature=temperature,
            bmi=bmi,
            age_months=age_months,
            notes=notes or "",
            measured_by_id=actor_user_id,
        )

        AuditService.log(
            event_code="somatometry.created",
            entity_type="SomatometryRecord",
            entity_id=record.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(patient.id), "measurement_date": measurement_date, "age_months": age_months},
        )
        logger.info(f"Somatometry record {record.id} created for patient {patient.id} ({age_months} months)")
        return record

    @staticmethod
    @transaction.atomic
    def update(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        record_id: UUID,
        data: dict,
    ) -> SomatometryRecord:
        try:
            record = (
                SomatometryRecord.objects.select_for_update()
                .select_related("patient")
                .get(id=record_id, business_unit_id=business_unit_id)
            )
        except SomatometryRecord.DoesNotExist:
            raise SomatometrySelector.NotFound()

        updates = {k: v for k, v in (data or {}).items() if k in SomatometryService.UPDATABLE_FIELDS}
        for k, v in updates.items():
            setattr(record, k, v)

        record.age_months, record.bmi = SomatometryService._derive(
            business_unit_id=business_unit_id,
            patient=record.patient,
            measurement_date=record.measurement_date,
            weight=record.weight,
            height=record.height,
            head_circumference=record.head_circumference,
        )
        record.save()

        AuditService.log(
            event_code="somatometry.updated",
            entity_type="SomatometryRecord",
            entity_id=record.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return record

    @staticmethod
    @transaction.atomic
    def delete(*, business_unit_id: UUID, actor_user_id: Optional[int], record_id: UUID) -> None:
        record = SomatometrySelector.get_record(business_unit_id=business_unit_id, record_id=record_id)
        patient_id = record.patient_id
        record_pk = record.id
        record.delete()

        AuditService.log(
            event_code="somatometry.deleted",
            entity_type="SomatometryRecord",
            entity_id=record_pk,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(patient_id)},
        )
        logger.info(f"Somatometry record {record_pk} deleted")

    @staticmethod
    def analyze_record(*, record: SomatometryRecord) -> analysis.GrowthAnalysis:
        return analyze_for_patient(
            business_unit_id=record.business_unit_id,
            patient=record.patient,
            age_months=record.age_months,
            weight=record.weight,
            height=record.height,
            head_circumference=record.head_circumference,
        )

    @staticmethod
    def preview(
        *,
        business_unit_id: UUID,
        patient_id: UUID,
        measurement_date: date,
        weight,
        height,
        head_circumference=None,
    ) -> analysis.GrowthAnalysis:
        """
        Analysis of an unsaved measurement, same rules as a stored one.
        """
        patient = _patient_in_scope(business_unit_id=business_unit_id, patient_id=patient_id)
        age_months, _ = SomatometryService._derive(
            business_unit_id=business_unit_id,
            patient=patient,
            measurement_date=measurement_date,
            weight=weight,
            height=height,
            head_circumference=head_circumference,
        )
        return analyze_for_patient(
            business_unit_id=business_unit_id,
            patient=patient,
            age_months=age_months,
            weight=weight,
            height=height,
            head_circumference=head_circumference,
        )

    @staticmethod
    def slider_ranges(*, business_unit_id: UUID, patient_id: UUID, measurement_date: date) -> dict:
        patient = _patient_in_scope(business_unit_id=business_unit_id, patient_id=patient_id)
        age_months = age_for(date_of_birth=patient.date_of_birth, measurement_date=measurement_date)
        rows = ReferenceSelector.rows_for(sex=patient.sex, age_months=age_months)
        ranges = analysis.slider_ranges(age_months, rows)
        return {
            "age_months": age_months,
            "ranges": {k: asdict(v) for k, v in ranges.items()},
        }


# -------------------------
# Configuration
# -------------------------
PRESETS = {
    "conservative": {
        "bmi_underweight_threshold": 15.0,
        "bmi_overweight_threshold": 23.0,
        "bmi_obesity_threshold": 27.0,
        "show_growth_alerts": True,
        "alert_percentile_below": 5,
        "alert_percentile_above": 95,
        "require_head_circumference_under_24m": True,
    },
    "standard": {
        "bmi_underweight_threshold": 15.0,
        "bmi_overweight_threshold": 25.0,
        "bmi_obesity_threshold": 30.0,
        "show_growth_alerts": True,
        "alert_percentile_below": 3,
        "alert_percentile_above": 97,
        "require_head_circumference_under_24m": True,
    },
    "liberal": {
        "bmi_underweight_threshold": 13.0,
        "bmi_overweight_threshold": 27.0,
        "bmi_obesity_threshold": 32.0,
        "show_growth_alerts": False,
        "alert_percentile_below": 3,
        "alert_percentile_above": 97,
        "require_head_circumference_under_24m": False,
    },
}

ALERT_BELOW_CHOICES = (3, 5, 10)
ALERT_ABOVE_CHOICES = (90, 95, 97)

# presets leave the reference-standard and manual-age flags untouched
DEFAULT_CONFIG = {
    **PRESETS["standard"],
    "use_who_standards": True,
    "use_cdc_standards": False,
    "allow_manual_age_override": False,
}

CONFIG_FIELDS = set(DEFAULT_CONFIG.keys())


def validate_config_values(values: dict) -> None:
    errors: dict[str, str] = {}
    under = values["bmi_underweight_threshold"]
    over = values["bmi_overweight_threshold"]
    obese = values["bmi_obesity_threshold"]

    if not 10 <= under <= 20:
        errors["bmi_underweight_threshold"] = "Must be between 10 and 20."
    if not 20 <= over <= 30:
        errors["bmi_overweight_threshold"] = "Must be between 20 and 30."
    if not 25 <= obese <= 40:
        errors["bmi_obesity_threshold"] = "Must be between 25 and 40."
    if not errors and not under < over < obese:
        errors["bmi_overweight_threshold"] = "Thresholds must satisfy underweight < overweight < obesity."

    if values["alert_percentile_below"] not in ALERT_BELOW_CHOICES:
        errors["alert_percentile_below"] = f"Must be one of {list(ALERT_BELOW_CHOICES)}."
    if values["alert_percentile_above"] not in ALERT_ABOVE_CHOICES:
        errors["alert_percentile_above"] = f"Must be one of {list(ALERT_ABOVE_CHOICES)}."
    if not (values["use_who_standards"] or values["use_cdc_standards"]):
        errors["use_who_standards"] = "At least one reference standard (WHO or CDC) must be enabled."

    if errors:
        raise ValidationError(errors)


class SomatometryConfigService:
    @staticmethod
    def get_or_create(*, business_unit_id: UUID) -> SomatometryConfig:
        config, _ = SomatometryConfig.objects.get_or_create(
            business_unit_id=business_unit_id,
            defaults=DEFAULT_CONFIG,
        )
        return config

    @staticmethod
    @transaction.atomic
    def update(*, business_unit_id: UUID, actor_user_id: Optional[int], data: dict) -> SomatometryConfig:
        config = SomatometryConfigService.get_or_create(business_unit_id=business_unit_id)
        updates = {k: v for k, v in (data or {}).items() if k in CONFIG_FIELDS}

        merged = {f: getattr(config, f) for f in CONFIG_FIELDS}
        merged.update(updates)
        validate_config_values(merged)

        for k, v in updates.items():
            setattr(config, k, v)
        config.save()

        AuditService.log(
            event_code="somatometry.config_updated",
            entity_type="SomatometryConfig",
            entity_id=config.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return config

    @staticmethod
    @transaction.atomic
    def apply_preset(*, business_unit_id: UUID, actor_user_id: Optional[int], preset: str) -> SomatometryConfig:
        if preset not in PRESETS:
            raise ValidationError({"preset": f"Must be one of {sorted(PRESETS)}."})

        config = SomatometryConfigService.get_or_create(business_unit_id=business_unit_id)
        for k, v in PRESETS[preset].items():
            setattr(config, k, v)
        config.save()

        AuditService.log(
            event_code="somatometry.config_preset_applied",
            entity_type="SomatometryConfig",
            entity_id=config.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"preset": preset},
        )
        logger.info(f"Somatometry preset '{preset}' applied to business unit {business_unit_id}")
        return config
