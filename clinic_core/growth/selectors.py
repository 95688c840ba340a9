# clinic_core/growth/selectors.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db.models import Avg, QuerySet

from clinic_core.growth import analysis
from clinic_core.growth.filters import SomatometryRecordFilter
from clinic_core.growth.models import SomatometryConfig, SomatometryRecord, WHOPercentileRow

TREND_TOLERANCE_BMI = 0.5


class SomatometrySelector:
    class NotFound(Exception):
        pass

    @staticmethod
    def get_record(*, business_unit_id: UUID, record_id) -> SomatometryRecord:
        try:
            return SomatometryRecord.objects.select_related("patient").get(
                id=record_id, business_unit_id=business_unit_id
            )
        except (SomatometryRecord.DoesNotExist, ValidationError):
            raise SomatometrySelector.NotFound()

    @staticmethod
    def list_records(*, business_unit_id: UUID, params: Any) -> QuerySet[SomatometryRecord]:
        """
        Query params: patient, date_from, date_to, age_min, age_max, measured_by.
        """
        qs = SomatometryRecord.objects.select_related("patient").filter(business_unit_id=business_unit_id)
        f = SomatometryRecordFilter(params, queryset=qs)
        if not f.is_valid():
            raise ValidationError({k: [str(m) for m in v] for k, v in f.errors.items()})
        return f.qs.order_by("-measurement_date", "-created_at")

    @staticmethod
    def patient_records(*, business_unit_id: UUID, patient_id: UUID) -> QuerySet[SomatometryRecord]:
        return SomatometryRecord.objects.filter(business_unit_id=business_unit_id, patient_id=patient_id).order_by(
            "measurement_date", "created_at"
        )

    @staticmethod
    def growth_statistics(*, business_unit_id: UUID, patient_id: UUID) -> dict:
        qs = SomatometrySelector.patient_records(business_unit_id=business_unit_id, patient_id=patient_id)

        agg = qs.aggregate(avg_weight=Avg("weight"), avg_height=Avg("height"), avg_bmi=Avg("bmi"))
        records = list(qs)
        last: Optional[SomatometryRecord] = records[-1] if records else None

        return {
            "total_measurements": len(records),
            "average_weight": _round(agg["avg_weight"]),
            "average_height": _round(agg["avg_height"]),
            "average_bmi": _round(agg["avg_bmi"]),
            "last_measurement": last.measurement_date if last else None,
            "trend": _bmi_trend(records),
        }

    @staticmethod
    def patient_growth_series(*, business_unit_id: UUID, patient_id: UUID, indicator: str) -> list[dict]:
        """
        [{measurement_date, age_months, value}] oldest first, skipping records without the value.
        """
        if indicator not in analysis.INDICATORS:
            raise ValidationError({"indicator": f"Must be one of {list(analysis.INDICATORS)}."})

        out = []
        for r in SomatometrySelector.patient_records(business_unit_id=business_unit_id, patient_id=patient_id):
            value = getattr(r, indicator)
            if value is None:
                continue
            out.append({"measurement_date": r.measurement_date, "age_months": r.age_months, "value": float(value)})
        return out


class ReferenceSelector:
    """
    Growth-standard reference lookups. Missing rows return None, never raise.
    """

    @staticmethod
    def row(*, indicator: str, sex: str, age_months: int) -> Optional[WHOPercentileRow]:
        return WHOPercentileRow.objects.filter(indicator=indicator, sex=sex, age_months=age_months).first()

    @staticmethod
    def rows_for(*, sex: str, age_months: int) -> dict[str, Optional[WHOPercentileRow]]:
        found = {
            r.indicator: r
            for r in WHOPercentileRow.objects.filter(sex=sex, age_months=age_months, indicator__in=analysis.INDICATORS)
        }
        return {indicator: found.get(indicator) for indicator in analysis.INDICATORS}

    @staticmethod
    def who_chart(*, indicator: str, sex: str, age_from: int = 0, age_to: int = 60) -> dict:
        if indicator not in analysis.INDICATORS:
            raise ValidationError({"indicator": f"Must be one of {list(analysis.INDICATORS)}."})
        if age_from > age_to:
            raise ValidationError("age_from must be less than or equal to age_to.")

        rows = WHOPercentileRow.objects.filter(
            indicator=indicator, sex=sex, age_months__gte=age_from, age_months__lte=age_to
        ).order_by("age_months")

        series: dict[str, list] = {"ages": [], "p3": [], "p15": [], "p50": [], "p85": [], "p97": []}
        for r in rows:
            series["ages"].append(r.age_months)
            for key in ("p3", "p15", "p50", "p85", "p97"):
                series[key].append(getattr(r, key))
        return {"indicator": indicator, "sex": sex, **series}


def get_config(*, business_unit_id: UUID) -> Optional[SomatometryConfig]:
    return SomatometryConfig.objects.filter(business_unit_id=business_unit_id).first()


def growth_settings_for(*, business_unit_id: UUID) -> analysis.GrowthSettings:
    config = get_config(business_unit_id=business_unit_id)
    return config.to_settings() if config else analysis.GrowthSettings()


def _round(value) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 2)


def _bmi_trend(records: list[SomatometryRecord]) -> str:
    bmis = [float(r.bmi) for r in records if r.bmi]
    if len(bmis) < 2:
        return "stable"
    delta = bmis[-1] - bmis[-2]
    if delta > TREND_TOLERANCE_BMI:
        return "increasing"
    if delta < -TREND_TOLERANCE_BMI:
        return "decreasing"
    return "stable"


def age_for(*, date_of_birth: Optional[date], measurement_date: date) -> int:
    if date_of_birth is None:
        raise ValidationError({"patient_id": "Patient has no date of birth; age cannot be computed."})
    return analysis.age_in_months(date_of_birth, measurement_date)
