# clinic_core/growth/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.growth import analysis
from clinic_core.growth.models import SomatometryConfig, SomatometryRecord
from clinic_core.growth.services import PRESETS
from clinic_core.patients.models import Sex


class SomatometryRecordCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    measurement_date = serializers.DateField()
    weight = serializers.DecimalField(max_digits=6, decimal_places=2)
    height = serializers.DecimalField(max_digits=6, decimal_places=2)
    head_circumference = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    temperature = serializers.DecimalField(max_digits=4, decimal_places=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class SomatometryRecordUpdateSerializer(serializers.Serializer):
    measurement_date = serializers.DateField(required=False)
    weight = serializers.DecimalField(max_digits=6, decimal_places=2, required=False)
    height = serializers.DecimalField(max_digits=6, decimal_places=2, required=False)
    head_circumference = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    temperature = serializers.DecimalField(max_digits=4, decimal_places=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class AnalyzeSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    measurement_date = serializers.DateField()
    weight = serializers.DecimalField(max_digits=6, decimal_places=2)
    height = serializers.DecimalField(max_digits=6, decimal_places=2)
    head_circumference = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)


class SomatometryRecordSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    measured_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = SomatometryRecord
        fields = [
            "id",
            "business_unit_id",
            "patient_id",
            "measurement_date",
            "weight",
            "height",
            "head_circumference",
            "temperature",
            "bmi",
            "age_months",
            "notes",
            "measured_by_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class IndicatorResultSerializer(serializers.Serializer):
    value = serializers.FloatField(allow_null=True)
    percentile = serializers.FloatField(allow_null=True)
    z_score = serializers.FloatField(allow_null=True)
    status = serializers.CharField()


class GrowthAnalysisSerializer(serializers.Serializer):
    age_months = serializers.IntegerField()
    bmi = serializers.FloatField()
    indicators = serializers.DictField(child=IndicatorResultSerializer())
    alerts = serializers.ListField(child=serializers.CharField())


class WHOChartQuerySerializer(serializers.Serializer):
    indicator = serializers.ChoiceField(choices=analysis.INDICATORS)
    sex = serializers.ChoiceField(choices=Sex.choices)
    age_from = serializers.IntegerField(required=False, default=0, min_value=0)
    age_to = serializers.IntegerField(required=False, default=60, min_value=0, max_value=analysis.MAX_AGE_MONTHS)


class PatientQuerySerializer(serializers.Serializer):
    patient = serializers.UUIDField()


class SliderRangesQuerySerializer(serializers.Serializer):
    patient = serializers.UUIDField()
    measurement_date = serializers.DateField(required=False)


class SomatometryConfigSerializer(serializers.ModelSerializer):
    percentile_source = serializers.CharField(read_only=True)

    class Meta:
        model = SomatometryConfig
        fields = [
            "id",
            "business_unit_id",
            "bmi_underweight_threshold",
            "bmi_overweight_threshold",
            "bmi_obesity_threshold",
            "use_who_standards",
            "use_cdc_standards",
            "percentile_source",
            "show_growth_alerts",
            "alert_percentile_below",
            "alert_percentile_above",
            "require_head_circumference_under_24m",
            "allow_manual_age_override",
            "updated_at",
        ]
        read_only_fields = fields


class SomatometryConfigUpdateSerializer(serializers.Serializer):
    bmi_underweight_threshold = serializers.FloatField(required=False)
    bmi_overweight_threshold = serializers.FloatField(required=False)
    bmi_obesity_threshold = serializers.FloatField(required=False)
    use_who_standards = serializers.BooleanField(required=False)
    use_cdc_standards = serializers.BooleanField(required=False)
    show_growth_alerts = serializers.BooleanField(required=False)
    alert_percentile_below = serializers.IntegerField(required=False)
    alert_percentile_above = serializers.IntegerField(required=False)
    require_head_circumference_under_24m = serializers.BooleanField(required=False)
    allow_manual_age_override = serializers.BooleanField(required=False)


class PresetSerializer(serializers.Serializer):
    preset = serializers.ChoiceField(choices=sorted(PRESETS))
