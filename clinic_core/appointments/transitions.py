# clinic_core/appointments/transitions.py
from __future__ import annotations

from clinic_core.appointments.statuses import TERMINAL_STATUS_IDS, StatusId as S

# Default allowed moves, keyed by current status. Loaded into AppointmentStatusTransition
# by `manage.py seed_appointment_transitions` and the test fixtures.
DEFAULT_TRANSITIONS: dict[int, tuple[int, ...]] = {
    S.REQUESTED: (S.SCHEDULED, S.CONFIRMED, S.CANCELLED_BY_PATIENT, S.CANCELLED_BY_DOCTOR),
    S.SCHEDULED: (
        S.CONFIRMED,
        S.CHECKED_IN,
        S.IN_PROGRESS,
        S.NO_SHOW,
        S.CANCELLED_BY_PATIENT,
        S.CANCELLED_BY_DOCTOR,
        S.RESCHEDULED_BY_PATIENT,
        S.RESCHEDULED_BY_DOCTOR,
        S.URGENT,
    ),
    S.CONFIRMED: (
        S.CHECKED_IN,
        S.IN_PROGRESS,
        S.NO_SHOW,
        S.CANCELLED_BY_PATIENT,
        S.CANCELLED_BY_DOCTOR,
        S.RESCHEDULED_BY_PATIENT,
        S.RESCHEDULED_BY_DOCTOR,
        S.URGENT,
    ),
    S.CHECKED_IN: (S.WAITING, S.IN_PROGRESS, S.URGENT, S.CANCELLED_BY_PATIENT),
    S.WAITING: (S.IN_PROGRESS, S.URGENT, S.NO_SHOW, S.CANCELLED_BY_PATIENT),
    S.IN_PROGRESS: (S.ATTENDED, S.URGENT, S.PENDING_PAYMENT, S.PENDING_RESULTS),
    S.ATTENDED: (S.PENDING_PAYMENT, S.PENDING_RESULTS, S.FOLLOW_UP_REQUIRED, S.CLOSED),
    S.RESCHEDULED_BY_PATIENT: (S.SCHEDULED, S.CONFIRMED, S.CANCELLED_BY_PATIENT),
    S.RESCHEDULED_BY_DOCTOR: (S.SCHEDULED, S.CONFIRMED, S.CANCELLED_BY_DOCTOR),
    S.URGENT: (S.IN_PROGRESS, S.ATTENDED),
    S.PENDING_PAYMENT: (S.CLOSED,),
    S.PENDING_RESULTS: (S.FOLLOW_UP_REQUIRED, S.CLOSED),
    S.FOLLOW_UP_REQUIRED: (S.CLOSED,),
}


def default_transition_pairs() -> list[tuple[int, int]]:
    pairs = []
    for from_status, targets in DEFAULT_TRANSITIONS.items():
        if from_status in TERMINAL_STATUS_IDS:
            continue
        for to_status in targets:
            if to_status != from_status:
                pairs.append((from_status, to_status))
    return pairs


def seed_default_transitions(model=None) -> int:
    """
    Idempotently insert the default transition pairs. Returns the number of rows created.
    `model` lets callers pass a historical or proxy model.
    """
    if model is None:
        from clinic_core.appointments.models import AppointmentStatusTransition as model

    created = 0
    for from_status, to_status in default_transition_pairs():
        _, was_created = model.objects.get_or_create(
            from_status=from_status,
            to_status=to_status,
            defaults={"is_active": True},
        )
        created += 1 if was_created else 0
    return created
