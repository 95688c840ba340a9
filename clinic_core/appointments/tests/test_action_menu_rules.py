import datetime

from django.utils import timezone

from clinic_core.appointments.rules import (
    REASON_NO_PERMISSION,
    REASON_PAST,
    REASON_TERMINAL,
    available_actions,
    is_past,
)


def _menu(**kwargs):
    defaults = dict(status_id=1, is_past=False, can_edit=True, can_cancel=True, can_change_status=True)
    defaults.update(kwargs)
    return {a.key: a for a in available_actions(**defaults)}


def test_menu_order_is_stable():
    keys = [a.key for a in available_actions(status_id=1, is_past=False, can_edit=True, can_cancel=True, can_change_status=True)]
    assert keys == ["view", "edit", "reschedule", "change_status", "add_note", "history", "print", "cancel"]


def test_open_future_appointment_enables_everything():
    menu = _menu()
    assert all(a.enabled for a in menu.values())


def test_terminal_status_disables_mutations_with_closed_reason():
    menu = _menu(status_id=15)
    for key in ("edit", "reschedule", "change_status", "cancel"):
        assert menu[key].enabled is False
        assert menu[key].reason == REASON_TERMINAL
    for key in ("view", "add_note", "history", "print"):
        assert menu[key].enabled is True


def test_terminal_reason_wins_over_past_and_permission():
    menu = _menu(status_id=7, is_past=True, can_edit=False, can_cancel=False)
    assert menu["edit"].reason == REASON_TERMINAL
    assert menu["cancel"].reason == REASON_TERMINAL


def test_past_appointment_blocks_edit_and_cancel_only():
    menu = _menu(is_past=True)
    assert menu["edit"].reason == REASON_PAST
    assert menu["cancel"].reason == REASON_PAST
    assert menu["reschedule"].enabled is True
    assert menu["change_status"].enabled is True


def test_missing_permission_reason():
    menu = _menu(can_edit=False, can_cancel=False, can_change_status=False)
    assert menu["edit"].reason == REASON_NO_PERMISSION
    assert menu["cancel"].reason == REASON_NO_PERMISSION
    assert menu["change_status"].reason == REASON_NO_PERMISSION


def test_is_past_compares_start_with_now():
    class Slot:
        scheduled_date = datetime.date(2030, 1, 10)
        start_time = datetime.time(9, 0)

    tz = timezone.get_current_timezone()
    before = timezone.make_aware(datetime.datetime(2030, 1, 10, 8, 59), tz)
    after = timezone.make_aware(datetime.datetime(2030, 1, 10, 9, 1), tz)

    assert is_past(Slot(), now=before) is False
    assert is_past(Slot(), now=after) is True
