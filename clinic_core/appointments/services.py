# clinic_core/appointments/services.py

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from clinic_core.appointments.models import (
    Appointment,
    AppointmentStatusHistory,
    ConsultationType,
    EvolutionUnit,
)
from clinic_core.appointments.rules import is_past
from clinic_core.appointments.selectors import AppointmentSelector
from clinic_core.appointments.statuses import StatusId, get_status, is_terminal_status, is_valid_status
from clinic_core.audit.services import AuditService
from clinic_core.patients.models import Patient

logger = logging.getLogger(__name__)

MAX_DURATION_MINUTES = 8 * 60

INITIAL_STATUSES = {StatusId.REQUESTED, StatusId.SCHEDULED, StatusId.CONFIRMED, StatusId.URGENT}

REQUESTED_BY_PATIENT = "patient"
REQUESTED_BY_DOCTOR = "doctor"

RESCHEDULE_STATUS = {
    REQUESTED_BY_PATIENT: StatusId.RESCHEDULED_BY_PATIENT,
    REQUESTED_BY_DOCTOR: StatusId.RESCHEDULED_BY_DOCTOR,
}
CANCEL_STATUS = {
    REQUESTED_BY_PATIENT: StatusId.CANCELLED_BY_PATIENT,
    REQUESTED_BY_DOCTOR: StatusId.CANCELLED_BY_DOCTOR,
}


class AppointmentConflict(ValidationError):
    """
    A business rule blocked the action (terminal appointment, transition not allowed,
    room already booked). The API maps it to 409.
    """


def compute_end_time(start_time: time, duration_minutes: int) -> time:
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError({"duration_minutes": "Duration must be greater than zero."})
    if duration_minutes > MAX_DURATION_MINUTES:
        raise ValidationError({"duration_minutes": f"Duration cannot exceed {MAX_DURATION_MINUTES} minutes."})

    start = datetime.combine(date.min, start_time)
    end = start + timedelta(minutes=duration_minutes)
    if end.date() != start.date():
        raise ValidationError({"duration_minutes": "Appointment cannot run past midnight."})
    return end.time()


class AppointmentService:
    """
    Appointment write-model operations.

    Notes:
    - Status ids and the terminal set come from appointments.statuses.
    - Allowed moves come from the AppointmentStatusTransition table; a terminal status has none.
    - Every status change and reschedule writes one AppointmentStatusHistory row and one audit event.
    """

    UPDATABLE_FIELDS = {
        "doctor_id",
        "duration_minutes",
        "reason",
        "notes",
        "is_urgent",
        "consulting_room",
        "consultation_type",
        "evolution_time",
        "evolution_unit",
        "associated_symptoms",
    }

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get_locked(*, business_unit_id: UUID, appointment_id: UUID) -> Appointment:
        try:
            return Appointment.objects.select_for_update().get(id=appointment_id, business_unit_id=business_unit_id)
        except Appointment.DoesNotExist:
            raise AppointmentSelector.NotFound()

    @staticmethod
    def _validate_clinical_fields(
        *,
        consultation_type: Optional[str],
        evolution_time: Optional[int],
        evolution_unit: Optional[str],
        associated_symptoms,
    ) -> None:
        if consultation_type is not None and consultation_type not in ConsultationType.values:
            raise ValidationError({"consultation_type": f"Must be one of {ConsultationType.values}."})
        if evolution_unit and evolution_unit not in EvolutionUnit.values:
            raise ValidationError({"evolution_unit": f"Must be one of {EvolutionUnit.values}."})
        if evolution_time is not None and not evolution_unit:
            raise ValidationError({"evolution_unit": "Required when evolution_time is given."})
        if associated_symptoms is not None and not isinstance(associated_symptoms, list):
            raise ValidationError({"associated_symptoms": "Must be a list."})

    @staticmethod
    def _validate_doctor(doctor_id: Optional[int]) -> None:
        if doctor_id is None:
            return
        if not get_user_model().objects.filter(id=doctor_id, is_active=True).exists():
            raise ValidationError({"doctor_id": f"Doctor {doctor_id} does not exist or is inactive."})

    @staticmethod
    def _ensure_slot_free(
        *,
        business_unit_id: UUID,
        scheduled_date: date,
        start_time: time,
        end_time: time,
        consulting_room: Optional[int],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        clash = AppointmentSelector.overlapping(
            business_unit_id=business_unit_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            consulting_room=consulting_room,
            exclude_id=exclude_id,
        ).first()
        if clash is not None:
            logger.warning(
                f"Slot {scheduled_date} {start_time}-{end_time} room {consulting_room} "
                f"already taken by appointment {clash.id}"
            )
            raise AppointmentConflict(
                f"Consulting room {consulting_room} is already booked from "
                f"{clash.start_time:%H:%M} to {clash.end_time:%H:%M} on {scheduled_date}."
            )

    @staticmethod
    def _record_history(
        *,
        appointment: Appointment,
        from_status: int,
        actor_user_id: Optional[int],
        notes: str = "",
        previous_date: Optional[date] = None,
        previous_time: Optional[time] = None,
    ) -> AppointmentStatusHistory:
        return AppointmentStatusHistory.objects.create(
            business_unit_id=appointment.business_unit_id,
            appointment=appointment,
            from_status=from_status,
            to_status=appointment.status,
            previous_date=previous_date or appointment.scheduled_date,
            previous_time=previous_time or appointment.start_time,
            new_date=appointment.scheduled_date,
            new_time=appointment.start_time,
            notes=notes or "",
            changed_by_id=actor_user_id,
        )

    # -------------------------
    # Create / update
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        patient_id: UUID,
        scheduled_date: date,
        start_time: time,
        duration_minutes: Optional[int] = None,
        consulting_room: Optional[int] = None,
        doctor_id: Optional[int] = None,
        reason: str = "",
        notes: str = "",
        is_urgent: bool = False,
        consultation_type: str = ConsultationType.FIRST,
        evolution_time: Optional[int] = None,
        evolution_unit: str = "",
        associated_symptoms: Optional[list] = None,
        status: Optional[int] = None,
    ) -> Appointment:
        if not Patient.objects.filter(id=patient_id, business_unit_id=business_unit_id).exists():
            raise ValidationError({"patient_id": "Patient not found in this business unit."})

        if status is None:
            status = StatusId.URGENT if is_urgent else StatusId.SCHEDULED
        if status not in INITIAL_STATUSES:
            raise ValidationError({"status": "An appointment can only start as Requested, Scheduled, Confirmed or Urgent."})

        AppointmentService._validate_clinical_fields(
            consultation_type=consultation_type,
            evolution_time=evolution_time,
            evolution_unit=evolution_unit,
            associated_symptoms=associated_symptoms,
        )

        AppointmentService._validate_doctor(doctor_id)

        duration = duration_minutes or settings.CLINIC_DEFAULT_APPOINTMENT_MINUTES
        end_time = compute_end_time(start_time, duration)

        AppointmentService._ensure_slot_free(
            business_unit_id=business_unit_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            consulting_room=consulting_room,
        )

        appointment = Appointment.objects.create(
            business_unit_id=business_unit_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration,
            status=status,
            reason=reason or "",
            notes=notes or "",
            is_urgent=is_urgent,
            consulting_room=consulting_room,
            consultation_type=consultation_type,
            evolution_time=evolution_time,
            evolution_unit=evolution_unit or "",
            associated_symptoms=associated_symptoms or [],
        )

        AuditService.log(
            event_code="appointment.created",
            entity_type="Appointment",
            entity_id=appointment.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={
                "patient_id": str(patient_id),
                "scheduled_date": scheduled_date,
                "start_time": start_time,
                "status": status,
            },
        )
        logger.info(f"Appointment {appointment.id} created for {scheduled_date} {start_time} (status {status})")
        return appointment

    @staticmethod
    @transaction.atomic
    def update(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        appointment_id: UUID,
        data: dict,
        now: Optional[datetime] = None,
    ) -> Appointment:
        appointment = AppointmentService._get_locked(business_unit_id=business_unit_id, appointment_id=appointment_id)

        if is_terminal_status(appointment.status):
            raise AppointmentConflict("Closed appointments cannot be edited.")
        if is_past(appointment, now=now):
            raise AppointmentConflict("Past appointments cannot be edited.")

        updates = {k: v for k, v in (data or {}).items() if k in AppointmentService.UPDATABLE_FIELDS}

        AppointmentService._validate_clinical_fields(
            consultation_type=updates.get("consultation_type"),
            evolution_time=updates.get("evolution_time", appointment.evolution_time),
            evolution_unit=updates.get("evolution_unit", appointment.evolution_unit),
            associated_symptoms=updates.get("associated_symptoms"),
        )

        if "doctor_id" in updates:
            AppointmentService._validate_doctor(updates["doctor_id"])

        for k, v in updates.items():
            setattr(appointment, k, v)

        if "duration_minutes" in updates or "consulting_room" in updates:
            appointment.end_time = compute_end_time(appointment.start_time, appointment.duration_minutes)
            AppointmentService._ensure_slot_free(
                business_unit_id=business_unit_id,
                scheduled_date=appointment.scheduled_date,
                start_time=appointment.start_time,
                end_time=appointment.end_time,
                consulting_room=appointment.consulting_room,
                exclude_id=appointment.id,
            )

        appointment.save()

        AuditService.log(
            event_code="appointment.updated",
            entity_type="Appointment",
            entity_id=appointment.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return appointment

    # -------------------------
    # Status workflow
    # -------------------------
    @staticmethod
    @transaction.atomic
    def change_status(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        appointment_id: UUID,
        to_status: int,
        notes: str = "",
    ) -> Appointment:
        """
        Applies one transition after re-checking it against the current row:
        - current status must not be terminal
        - target must be a known status and listed in the transition table
        - a terminal target requires notes
        """
        appointment = AppointmentService._get_locked(business_unit_id=business_unit_id, appointment_id=appointment_id)
        from_status = appointment.status
        notes = (notes or "").strip()

        if is_terminal_status(from_status):
            raise AppointmentConflict(
                f"Appointment is {get_status(from_status).name}; no further status changes are allowed."
            )
        if not is_valid_status(to_status):
            raise ValidationError({"to_status": f"Unknown status {to_status}."})
        if not AppointmentSelector.is_transition_allowed(from_status, to_status):
            logger.warning(f"Rejected transition {from_status} -> {to_status} for appointment {appointment.id}")
            raise AppointmentConflict(
                f"Cannot change status from {get_status(from_status).name} to {get_status(to_status).name}."
            )
        if is_terminal_status(to_status) and not notes:
            raise ValidationError({"notes": f"Notes are required to change status to {get_status(to_status).name}."})

        appointment.status = to_status
        if to_status == StatusId.URGENT:
            appointment.is_urgent = True
        appointment.save(update_fields=["status", "is_urgent", "updated_at"])

        AppointmentService._record_history(
            appointment=appointment,
            from_status=from_status,
            actor_user_id=actor_user_id,
            notes=notes,
        )
        AuditService.log(
            event_code="appointment.status_changed",
            entity_type="Appointment",
            entity_id=appointment.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"from_status": from_status, "to_status": to_status, "notes": notes},
        )
        logger.info(f"Appointment {appointment.id} status {from_status} -> {to_status}")
        return appointment

    @staticmethod
    @transaction.atomic
    def cancel(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        appointment_id: UUID,
        cancelled_by: str,
        notes: str,
        now: Optional[datetime] = None,
    ) -> Appointment:
        if cancelled_by not in CANCEL_STATUS:
            raise ValidationError({"cancelled_by": f"Must be one of {sorted(CANCEL_STATUS)}."})

        appointment = AppointmentService._get_locked(business_unit_id=business_unit_id, appointment_id=appointment_id)
        if not is_terminal_status(appointment.status) and is_past(appointment, now=now):
            raise AppointmentConflict("Past appointments cannot be cancelled; mark them as No Show instead.")

        return AppointmentService.change_status(
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            appointment_id=appointment_id,
            to_status=CANCEL_STATUS[cancelled_by],
            notes=notes,
        )

    @staticmethod
    @transaction.atomic
    def reschedule(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        appointment_id: UUID,
        new_date: date,
        new_start_time: time,
        requested_by: str,
        duration_minutes: Optional[int] = None,
        consulting_room: Optional[int] = None,
        notes: str = "",
        now: Optional[datetime] = None,
    ) -> Appointment:
        if requested_by not in RESCHEDULE_STATUS:
            raise ValidationError({"requested_by": f"Must be one of {sorted(RESCHEDULE_STATUS)}."})

        appointment = AppointmentService._get_locked(business_unit_id=business_unit_id, appointment_id=appointment_id)
        if is_terminal_status(appointment.status):
            raise AppointmentConflict("Closed appointments cannot be rescheduled.")

        now = now or timezone.now()
        new_start = timezone.make_aware(datetime.combine(new_date, new_start_time), timezone.get_current_timezone())
        if new_start < now:
            raise ValidationError({"new_date": "The new date and time must be in the future."})

        duration = duration_minutes or appointment.duration_minutes
        room = consulting_room if consulting_room is not None else appointment.consulting_room
        end_time = compute_end_time(new_start_time, duration)

        AppointmentService._ensure_slot_free(
            business_unit_id=business_unit_id,
            scheduled_date=new_date,
            start_time=new_start_time,
            end_time=end_time,
            consulting_room=room,
            exclude_id=appointment.id,
        )

        from_status = appointment.status
        previous_date, previous_time = appointment.scheduled_date, appointment.start_time

        appointment.scheduled_date = new_date
        appointment.start_time = new_start_time
        appointment.end_time = end_time
        appointment.duration_minutes = duration
        appointment.consulting_room = room
        appointment.status = RESCHEDULE_STATUS[requested_by]
        appointment.save()

        AppointmentService._record_history(
            appointment=appointment,
            from_status=from_status,
            actor_user_id=actor_user_id,
            notes=notes,
            previous_date=previous_date,
            previous_time=previous_time,
        )
        AuditService.log(
            event_code="appointment.rescheduled",
            entity_type="Appointment",
            entity_id=appointment.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={
                "previous_date": previous_date,
                "previous_time": previous_time,
                "new_date": new_date,
                "new_time": new_start_time,
                "requested_by": requested_by,
            },
        )
        logger.info(f"Appointment {appointment.id} moved from {previous_date} {previous_time} to {new_date} {new_start_time}")
        return appointment

    # -------------------------
    # Notes / availability
    # -------------------------
    @staticmethod
    @transaction.atomic
    def add_note(
        *,
        business_unit_id: UUID,
        actor_user_id: Optional[int],
        appointment_id: UUID,
        note: str,
        author_label: str = "",
    ) -> Appointment:
        """
        Appends a stamped line to notes. Allowed in any status, including terminal ones.
        """
        note = (note or "").strip()
        if not note:
            raise ValidationError({"note": "Note cannot be empty."})

        appointment = AppointmentService._get_locked(business_unit_id=business_unit_id, appointment_id=appointment_id)

        stamp = timezone.localtime().strftime("%Y-%m-%d %H:%M")
        line = f"[{stamp}{' ' + author_label if author_label else ''}] {note}"
        appointment.notes = f"{appointment.notes}\n{line}" if appointment.notes else line
        appointment.save(update_fields=["notes", "updated_at"])

        AuditService.log(
            event_code="appointment.note_added",
            entity_type="Appointment",
            entity_id=appointment.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"length": len(note)},
        )
        return appointment

    @staticmethod
    def check_slot_availability(
        *,
        business_unit_id: UUID,
        scheduled_date: date,
        start_time: time,
        duration_minutes: int,
        consulting_room: Optional[int],
        exclude_id: Optional[UUID] = None,
    ) -> dict:
        end_time = compute_end_time(start_time, duration_minutes)
        conflicts = AppointmentSelector.overlapping(
            business_unit_id=business_unit_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            consulting_room=consulting_room,
            exclude_id=exclude_id,
        )
        conflict_ids = [str(pk) for pk in conflicts.values_list("id", flat=True)]
        return {
            "available": not conflict_ids,
            "scheduled_date": scheduled_date,
            "start_time": start_time,
            "end_time": end_time,
            "consulting_room": consulting_room,
            "conflicts": conflict_ids,
        }
