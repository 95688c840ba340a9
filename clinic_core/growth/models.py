# clinic_core/growth/models.py
import uuid

from django.conf import settings
from django.db import models

from clinic_core.common.models import ScopedModel, TimeStampedModel
from clinic_core.growth.analysis import GrowthSettings
from clinic_core.patients.models import Patient, Sex


class Indicator(models.TextChoices):
    WEIGHT = "weight", "Weight for age"
    HEIGHT = "height", "Height for age"
    BMI = "bmi", "BMI for age"
    HEAD_CIRCUMFERENCE = "head_circumference", "Head circumference for age"


class SomatometryRecord(ScopedModel):
    """
    One set of body measurements for a patient.
    age_months and bmi are derived by the service, never taken from the client.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="somatometry_records")
    measurement_date = models.DateField(db_index=True)

    weight = models.DecimalField(max_digits=6, decimal_places=2)  # kg
    height = models.DecimalField(max_digits=6, decimal_places=2)  # cm
    head_circumference = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)  # cm
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)  # celsius

    bmi = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    age_months = models.PositiveIntegerField()

    notes = models.TextField(blank=True)
    measured_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="clinic_somatometry_records",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "growth_somatometry_record"
        indexes = [
            models.Index(fields=["business_unit_id", "patient", "measurement_date"]),
        ]
        ordering = ["-measurement_date", "-created_at"]

    def __str__(self) -> str:
        return f"{self.patient_id} @ {self.measurement_date}"


class WHOPercentileRow(models.Model):
    """
    Growth-standard reference values for one indicator, sex and age in months.
    Shared across business units.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    indicator = models.CharField(max_length=32, choices=Indicator.choices)
    sex = models.CharField(max_length=1, choices=Sex.choices)
    age_months = models.PositiveIntegerField()

    p3 = models.FloatField()
    p15 = models.FloatField()
    p50 = models.FloatField()
    p85 = models.FloatField()
    p97 = models.FloatField()

    # LMS parameters, when the source table provides them
    l = models.FloatField(null=True, blank=True)
    m = models.FloatField(null=True, blank=True)
    s = models.FloatField(null=True, blank=True)

    class Meta:
        db_table = "growth_who_percentile"
        constraints = [
            models.UniqueConstraint(fields=["indicator", "sex", "age_months"], name="uq_who_percentile_row"),
        ]
        ordering = ["indicator", "sex", "age_months"]

    def __str__(self) -> str:
        return f"{self.indicator}/{self.sex}/{self.age_months}m"


class SomatometryConfig(TimeStampedModel):
    """
    Per business unit analysis settings (BMI thresholds, reference standards and growth alerts).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business_unit_id = models.UUIDField(unique=True)

    bmi_underweight_threshold = models.FloatField(default=15.0)
    bmi_overweight_threshold = models.FloatField(default=25.0)
    bmi_obesity_threshold = models.FloatField(default=30.0)

    use_who_standards = models.BooleanField(default=True)
    use_cdc_standards = models.BooleanField(default=False)

    show_growth_alerts = models.BooleanField(default=True)
    alert_percentile_below = models.PositiveSmallIntegerField(default=3)
    alert_percentile_above = models.PositiveSmallIntegerField(default=97)
    require_head_circumference_under_24m = models.BooleanField(default=True)
    # clients may offer a manual age field; stored records still derive age from the birth date
    allow_manual_age_override = models.BooleanField(default=False)

    class Meta:
        db_table = "growth_somatometry_config"

    @property
    def percentile_source(self) -> str:
        return self.to_settings().percentile_source

    def to_settings(self) -> GrowthSettings:
        return GrowthSettings(
            bmi_underweight_threshold=self.bmi_underweight_threshold,
            bmi_overweight_threshold=self.bmi_overweight_threshold,
            bmi_obesity_threshold=self.bmi_obesity_threshold,
            show_growth_alerts=self.show_growth_alerts,
            alert_percentile_below=self.alert_percentile_below,
            alert_percentile_above=self.alert_percentile_above,
            require_head_circumference_under_24m=self.require_head_circumference_under_24m,
            use_who_standards=self.use_who_standards,
            use_cdc_standards=self.use_cdc_standards,
            allow_manual_age_override=self.allow_manual_age_override,
        )
