from django.contrib import admin

from clinic_core.growth.models import SomatometryConfig, SomatometryRecord, WHOPercentileRow


@admin.register(SomatometryRecord)
class SomatometryRecordAdmin(admin.ModelAdmin):
    list_display = ("patient", "measurement_date", "weight", "height", "bmi", "age_months", "business_unit_id")
    list_filter = ("business_unit_id",)
    search_fields = ("patient__mrn", "patient__first_name", "patient__paternal_surname")
    readonly_fields = ("bmi", "age_months")
    ordering = ("-measurement_date",)


@admin.register(WHOPercentileRow)
class WHOPercentileRowAdmin(admin.ModelAdmin):
    list_display = ("indicator", "sex", "age_months", "p3", "p15", "p50", "p85", "p97")
    list_filter = ("indicator", "sex")


@admin.register(SomatometryConfig)
class SomatometryConfigAdmin(admin.ModelAdmin):
    list_display = (
        "business_unit_id",
        "bmi_underweight_threshold",
        "bmi_overweight_threshold",
        "bmi_obesity_threshold",
        "show_growth_alerts",
    )
