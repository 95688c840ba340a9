from django.apps import AppConfig


class BusinessUnitsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.business_units"
