from django.contrib import admin

from clinic_core.appointments.models import Appointment, AppointmentStatusHistory, AppointmentStatusTransition


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = (
        "scheduled_date",
        "start_time",
        "patient",
        "status",
        "consulting_room",
        "is_urgent",
        "business_unit_id",
    )
    list_filter = ("business_unit_id", "status", "consultation_type", "is_urgent")
    search_fields = ("patient__first_name", "patient__paternal_surname", "patient__mrn", "reason")
    ordering = ("-scheduled_date", "-start_time")


@admin.register(AppointmentStatusTransition)
class AppointmentStatusTransitionAdmin(admin.ModelAdmin):
    list_display = ("from_status", "to_status", "is_active")
    list_filter = ("is_active", "from_status")


@admin.register(AppointmentStatusHistory)
class AppointmentStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ("appointment", "from_status", "to_status", "changed_by", "created_at")
    list_filter = ("business_unit_id", "to_status")
    readonly_fields = ("created_at",)
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        return False
