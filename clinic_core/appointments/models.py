# clinic_core/appointments/models.py
import uuid

from django.conf import settings
from django.db import models

from clinic_core.appointments.statuses import StatusId, status_choices
from clinic_core.common.models import ScopedModel
from clinic_core.patients.models import Patient


class ConsultationType(models.TextChoices):
    FIRST = "first", "First visit"
    FOLLOW_UP = "follow_up", "Follow-up"
    URGENT = "urgent", "Urgent"
    CONTROL = "control", "Control"
    REVIEW = "review", "Review"


class EvolutionUnit(models.TextChoices):
    HOURS = "hours", "Hours"
    DAYS = "days", "Days"
    WEEKS = "weeks", "Weeks"
    MONTHS = "months", "Months"


class Appointment(ScopedModel):
    """
    A booked consultation slot. status holds an id from appointments.statuses.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="appointments")
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="clinic_appointments",
        null=True,
        blank=True,
    )

    scheduled_date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField(default=30)

    status = models.PositiveSmallIntegerField(choices=status_choices(), default=StatusId.SCHEDULED, db_index=True)

    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    is_urgent = models.BooleanField(default=False)
    consulting_room = models.PositiveIntegerField(null=True, blank=True)

    consultation_type = models.CharField(
        max_length=16,
        choices=ConsultationType.choices,
        default=ConsultationType.FIRST,
    )
    evolution_time = models.PositiveIntegerField(null=True, blank=True)
    evolution_unit = models.CharField(max_length=8, choices=EvolutionUnit.choices, blank=True)
    associated_symptoms = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "appointments_appointment"
        indexes = [
            models.Index(fields=["business_unit_id", "scheduled_date", "start_time"]),
            models.Index(fields=["business_unit_id", "patient"]),
            models.Index(fields=["business_unit_id", "status"]),
        ]
        ordering = ["scheduled_date", "start_time"]

    def __str__(self) -> str:
        return f"{self.scheduled_date} {self.start_time:%H:%M} ({self.status})"


class AppointmentStatusTransition(models.Model):
    """
    Reference table of allowed status moves (from_status -> to_status).
    Terminal statuses never appear as from_status.
    """
    from_status = models.PositiveSmallIntegerField(choices=status_choices(), db_index=True)
    to_status = models.PositiveSmallIntegerField(choices=status_choices())
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "appointments_status_transition"
        constraints = [
            models.UniqueConstraint(fields=["from_status", "to_status"], name="uq_appointment_transition_pair"),
        ]
        ordering = ["from_status", "to_status"]

    def __str__(self) -> str:
        return f"{self.from_status} -> {self.to_status}"


class AppointmentStatusHistory(models.Model):
    """
    Immutable record of a status change or reschedule.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    business_unit_id = models.UUIDField(db_index=True)
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="status_history")

    from_status = models.PositiveSmallIntegerField(choices=status_choices())
    to_status = models.PositiveSmallIntegerField(choices=status_choices())

    previous_date = models.DateField(null=True, blank=True)
    previous_time = models.TimeField(null=True, blank=True)
    new_date = models.DateField(null=True, blank=True)
    new_time = models.TimeField(null=True, blank=True)

    notes = models.TextField(blank=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="clinic_appointment_changes",
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "appointments_status_history"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["business_unit_id", "appointment", "created_at"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("AppointmentStatusHistory is immutable.")
        return super().save(*args, **kwargs)
