# clinic_core/appointments/rules.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from django.utils import timezone

from clinic_core.appointments.statuses import is_terminal_status

REASON_TERMINAL = "Appointment is closed."
REASON_PAST = "Appointment is in the past."
REASON_NO_PERMISSION = "You do not have permission."


@dataclass(frozen=True)
class ActionState:
    key: str
    enabled: bool
    reason: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def appointment_starts_at(appointment) -> datetime:
    """
    Aware datetime of the appointment start in the current time zone.
    """
    naive = datetime.combine(appointment.scheduled_date, appointment.start_time)
    return timezone.make_aware(naive, timezone.get_current_timezone())


def is_past(appointment, *, now: datetime | None = None) -> bool:
    now = now or timezone.now()
    return appointment_starts_at(appointment) < now


def _state(key: str, blockers: list[tuple[bool, str]]) -> ActionState:
    # first matching blocker wins, so order the list by how the reason should read
    for blocked, reason in blockers:
        if blocked:
            return ActionState(key=key, enabled=False, reason=reason)
    return ActionState(key=key, enabled=True)


def available_actions(
    *,
    status_id: int,
    is_past: bool,
    can_edit: bool,
    can_cancel: bool,
    can_change_status: bool,
) -> list[ActionState]:
    """
    Action menu for one appointment.

    view/add_note/history/print are always available. Everything that mutates the
    booking itself is disabled once the appointment is terminal; edit and cancel are
    also disabled for past appointments.
    """
    terminal = is_terminal_status(status_id)

    return [
        ActionState("view", True),
        _state(
            "edit",
            [
                (terminal, REASON_TERMINAL),
                (is_past, REASON_PAST),
                (not can_edit, REASON_NO_PERMISSION),
            ],
        ),
        _state("reschedule", [(terminal, REASON_TERMINAL)]),
        _state(
            "change_status",
            [
                (terminal, REASON_TERMINAL),
                (not can_change_status, REASON_NO_PERMISSION),
            ],
        ),
        ActionState("add_note", True),
        ActionState("history", True),
        ActionState("print", True),
        _state(
            "cancel",
            [
                (terminal, REASON_TERMINAL),
                (is_past, REASON_PAST),
                (not can_cancel, REASON_NO_PERMISSION),
            ],
        ),
    ]
