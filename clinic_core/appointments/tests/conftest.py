# clinic_core/appointments/tests/conftest.py
import datetime

import pytest

from clinic_core.appointments.models import Appointment
from clinic_core.appointments.transitions import seed_default_transitions


@pytest.fixture(autouse=True)
def transitions(db):
    return seed_default_transitions()


@pytest.fixture
def future_date():
    return datetime.date.today() + datetime.timedelta(days=7)


@pytest.fixture
def make_appointment(business_unit, patient, future_date):
    def _make(**overrides):
        data = {
            "business_unit_id": business_unit.id,
            "patient": patient,
            "scheduled_date": future_date,
            "start_time": datetime.time(10, 0),
            "end_time": datetime.time(10, 30),
            "duration_minutes": 30,
            "status": 1,
        }
        data.update(overrides)
        return Appointment.objects.create(**data)

    return _make
