# clinic_core/appointments/selectors.py
from __future__ import annotations

from datetime import date, time
from typing import Any, Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db.models import Count, Q, QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date

from clinic_core.appointments.models import Appointment, AppointmentStatusHistory, AppointmentStatusTransition
from clinic_core.appointments.statuses import TERMINAL_STATUS_IDS, StatusId, get_status, is_terminal_status


class AppointmentSelector:
    class NotFound(Exception):
        pass

    @staticmethod
    def get_appointment(*, business_unit_id, appointment_id) -> Appointment:
        try:
            return Appointment.objects.select_related("patient").get(
                id=appointment_id, business_unit_id=business_unit_id
            )
        except (Appointment.DoesNotExist, ValidationError):
            raise AppointmentSelector.NotFound()

    @staticmethod
    def _parse_date_param(params: Any, name: str) -> Optional[date]:
        raw = params.get(name)
        if not raw:
            return None
        value = parse_date(raw)
        if value is None:
            raise ValidationError(f"{name} is invalid. Use YYYY-MM-DD.")
        return value

    @staticmethod
    def list_appointments(*, business_unit_id, params: Any) -> QuerySet[Appointment]:
        """
        Query params supported:
          - date_from / date_to (YYYY-MM-DD, inclusive)
          - patient or patient_id
          - status (int, may repeat as comma list: status=1,2)
          - active=1 -> exclude terminal statuses
          - ordering in {scheduled_date, -scheduled_date, created_at, -created_at}
        """
        qs = Appointment.objects.select_related("patient").filter(business_unit_id=business_unit_id)

        date_from = AppointmentSelector._parse_date_param(params, "date_from")
        date_to = AppointmentSelector._parse_date_param(params, "date_to")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must be on or before date_to.")
        if date_from:
            qs = qs.filter(scheduled_date__gte=date_from)
        if date_to:
            qs = qs.filter(scheduled_date__lte=date_to)

        patient_id = params.get("patient_id") or params.get("patient")
        if patient_id:
            qs = qs.filter(patient_id=patient_id)

        status_param = params.get("status")
        if status_param not in (None, ""):
            try:
                statuses = [int(s) for s in str(status_param).split(",") if s.strip()]
            except ValueError:
                raise ValidationError("status must be an integer or a comma separated list of integers.")
            qs = qs.filter(status__in=statuses)

        if params.get("active") in {"1", "true", "True"}:
            qs = qs.exclude(status__in=TERMINAL_STATUS_IDS)

        ordering = params.get("ordering")
        allowed = {"scheduled_date", "-scheduled_date", "created_at", "-created_at"}
        if ordering:
            if ordering not in allowed:
                raise ValidationError(f"ordering must be one of {sorted(allowed)}")
            secondary = "-start_time" if ordering == "-scheduled_date" else "start_time"
            return qs.order_by(ordering, secondary)

        return qs.order_by("scheduled_date", "start_time")

    @staticmethod
    def stats(*, business_unit_id, today: Optional[date] = None) -> dict:
        """
        Dashboard counters: all appointments, today's, pending (Scheduled) and Confirmed.
        """
        today = today or timezone.localdate()
        agg = Appointment.objects.filter(business_unit_id=business_unit_id).aggregate(
            total=Count("id"),
            today=Count("id", filter=Q(scheduled_date=today)),
            pending=Count("id", filter=Q(status=StatusId.SCHEDULED)),
            confirmed=Count("id", filter=Q(status=StatusId.CONFIRMED)),
        )
        return {k: int(v or 0) for k, v in agg.items()}

    @staticmethod
    def allowed_transitions(status_id: int) -> list[dict]:
        """
        Statuses reachable from status_id. Always empty for a terminal status.
        """
        if is_terminal_status(status_id):
            return []

        targets = (
            AppointmentStatusTransition.objects.filter(from_status=status_id, is_active=True)
            .exclude(to_status=status_id)
            .order_by("to_status")
            .values_list("to_status", flat=True)
        )
        return [get_status(t).as_dict() for t in targets]

    @staticmethod
    def is_transition_allowed(from_status: int, to_status: int) -> bool:
        if is_terminal_status(from_status) or from_status == to_status:
            return False
        return AppointmentStatusTransition.objects.filter(
            from_status=from_status, to_status=to_status, is_active=True
        ).exists()

    @staticmethod
    def history(*, appointment: Appointment) -> QuerySet[AppointmentStatusHistory]:
        return (
            AppointmentStatusHistory.objects.select_related("changed_by")
            .filter(appointment=appointment, business_unit_id=appointment.business_unit_id)
            .order_by("created_at")
        )

    @staticmethod
    def overlapping(
        *,
        business_unit_id: UUID,
        scheduled_date: date,
        start_time: time,
        end_time: time,
        consulting_room: Optional[int],
        exclude_id: Optional[UUID] = None,
    ) -> QuerySet[Appointment]:
        """
        Non-terminal appointments in the same room whose [start, end) overlaps the slot.
        Without a room there is nothing to collide with.
        """
        if consulting_room is None:
            return Appointment.objects.none()

        qs = (
            Appointment.objects.filter(
                business_unit_id=business_unit_id,
                scheduled_date=scheduled_date,
                consulting_room=consulting_room,
                start_time__lt=end_time,
                end_time__gt=start_time,
            )
            .exclude(status__in=TERMINAL_STATUS_IDS)
        )
        if exclude_id:
            qs = qs.exclude(id=exclude_id)
        return qs
