# clinic_core/growth/filters.py
import django_filters

from clinic_core.growth.models import SomatometryRecord


class SomatometryRecordFilter(django_filters.FilterSet):
    patient = django_filters.UUIDFilter(field_name="patient_id")
    date_from = django_filters.DateFilter(field_name="measurement_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="measurement_date", lookup_expr="lte")
    age_min = django_filters.NumberFilter(field_name="age_months", lookup_expr="gte")
    age_max = django_filters.NumberFilter(field_name="age_months", lookup_expr="lte")
    measured_by = django_filters.NumberFilter(field_name="measured_by_id")

    class Meta:
        model = SomatometryRecord
        fields = ["patient", "date_from", "date_to", "age_min", "age_max", "measured_by"]
