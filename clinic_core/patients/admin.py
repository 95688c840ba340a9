from django.contrib import admin

from clinic_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("mrn", "first_name", "paternal_surname", "sex", "date_of_birth", "business_unit_id")
    list_filter = ("business_unit_id", "sex")
    search_fields = ("mrn", "first_name", "paternal_surname", "maternal_surname", "phone", "email")
    ordering = ("-created_at",)
