# clinic_core/appointments/statuses.py
"""
Fixed catalogue of appointment statuses.

Ids are stored on Appointment.status and on the transition/history tables, so they
must never be renumbered. Which moves are allowed between them lives in the
AppointmentStatusTransition table; this module only says what each status is.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Mapping

DEFAULT_STATUS_COLOR = "#9CA3AF"


@dataclass(frozen=True)
class AppointmentStatusInfo:
    id: int
    code: str
    name: str
    color: str
    icon: str
    is_terminal: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


class StatusId:
    REQUESTED = 0
    SCHEDULED = 1
    CONFIRMED = 2
    CHECKED_IN = 3
    IN_PROGRESS = 4
    ATTENDED = 5
    NO_SHOW = 6
    CANCELLED_BY_PATIENT = 7
    CANCELLED_BY_DOCTOR = 8
    RESCHEDULED_BY_PATIENT = 9
    RESCHEDULED_BY_DOCTOR = 10
    URGENT = 11
    WAITING = 12
    PENDING_PAYMENT = 13
    PENDING_RESULTS = 14
    CLOSED = 15
    FOLLOW_UP_REQUIRED = 16


TERMINAL_STATUS_IDS = frozenset(
    {
        StatusId.NO_SHOW,
        StatusId.CANCELLED_BY_PATIENT,
        StatusId.CANCELLED_BY_DOCTOR,
        StatusId.CLOSED,
    }
)

_STATUSES = (
    AppointmentStatusInfo(StatusId.REQUESTED, "requested", "Requested", "#64748B", "inbox"),
    AppointmentStatusInfo(StatusId.SCHEDULED, "scheduled", "Scheduled", "#3B82F6", "clock"),
    AppointmentStatusInfo(StatusId.CONFIRMED, "confirmed", "Confirmed", "#22C55E", "check-circle"),
    AppointmentStatusInfo(StatusId.CHECKED_IN, "checked_in", "Checked In", "#0EA5E9", "user-check"),
    AppointmentStatusInfo(StatusId.IN_PROGRESS, "in_progress", "In Progress", "#F59E0B", "refresh-cw"),
    AppointmentStatusInfo(StatusId.ATTENDED, "attended", "Attended", "#10B981", "check-circle"),
    AppointmentStatusInfo(StatusId.NO_SHOW, "no_show", "No Show", "#EF4444", "user-x", True),
    AppointmentStatusInfo(
        StatusId.CANCELLED_BY_PATIENT, "cancelled_by_patient", "Cancelled by Patient", "#EF4444", "x-circle", True
    ),
    AppointmentStatusInfo(
        StatusId.CANCELLED_BY_DOCTOR, "cancelled_by_doctor", "Cancelled by Doctor", "#EF4444", "x-circle", True
    ),
    AppointmentStatusInfo(
        StatusId.RESCHEDULED_BY_PATIENT, "rescheduled_by_patient", "Rescheduled by Patient", "#6366F1", "refresh-cw"
    ),
    AppointmentStatusInfo(
        StatusId.RESCHEDULED_BY_DOCTOR, "rescheduled_by_doctor", "Rescheduled by Doctor", "#6366F1", "refresh-cw"
    ),
    AppointmentStatusInfo(StatusId.URGENT, "urgent", "Urgent", "#DC2626", "alert-triangle"),
    AppointmentStatusInfo(StatusId.WAITING, "waiting", "Waiting", "#9CA3AF", "pause-circle"),
    AppointmentStatusInfo(StatusId.PENDING_PAYMENT, "pending_payment", "Pending Payment", "#EAB308", "credit-card"),
    AppointmentStatusInfo(StatusId.PENDING_RESULTS, "pending_results", "Pending Results", "#A855F7", "flask"),
    AppointmentStatusInfo(StatusId.CLOSED, "closed", "Closed", "#475569", "lock", True),
    AppointmentStatusInfo(
        StatusId.FOLLOW_UP_REQUIRED, "follow_up_required", "Follow-up Required", "#14B8A6", "calendar-plus"
    ),
)

APPOINTMENT_STATUSES: Mapping[int, AppointmentStatusInfo] = MappingProxyType({s.id: s for s in _STATUSES})


def is_valid_status(status_id) -> bool:
    return status_id in APPOINTMENT_STATUSES


def is_terminal_status(status_id) -> bool:
    return status_id in TERMINAL_STATUS_IDS


def get_status(status_id) -> AppointmentStatusInfo:
    """
    Unknown ids get a neutral placeholder instead of raising, so stale rows still render.
    """
    info = APPOINTMENT_STATUSES.get(status_id)
    if info is not None:
        return info
    return AppointmentStatusInfo(
        id=status_id if isinstance(status_id, int) else -1,
        code="unknown",
        name=f"Unknown ({status_id})",
        color=DEFAULT_STATUS_COLOR,
        icon="clock",
    )


def status_choices() -> list[tuple[int, str]]:
    return [(s.id, s.name) for s in _STATUSES]
