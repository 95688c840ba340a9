# clinic_core/growth/tests/conftest.py
import datetime

import pytest

from clinic_core.growth import analysis
from clinic_core.growth.models import WHOPercentileRow
from clinic_core.patients.models import Patient, Sex


@pytest.fixture
def infant(db, business_unit):
    return Patient.objects.create(
        business_unit_id=business_unit.id,
        first_name="Leo",
        paternal_surname="Ruiz",
        sex=Sex.MALE,
        date_of_birth=datetime.date.today() - datetime.timedelta(days=200),
        mrn="MRN-INFANT-1",
    )


@pytest.fixture
def reference_rows(db, patient):
    """
    Weight and height reference rows for `patient` at today's age.
    """
    age = analysis.age_in_months(patient.date_of_birth, datetime.date.today())
    weight = WHOPercentileRow.objects.create(
        indicator="weight", sex=patient.sex, age_months=age, p3=11.0, p15=12.5, p50=14.0, p85=16.0, p97=18.0
    )
    height = WHOPercentileRow.objects.create(
        indicator="height", sex=patient.sex, age_months=age, p3=88.0, p15=92.0, p50=96.0, p85=100.0, p97=104.0
    )
    return {"weight": weight, "height": height, "age_months": age}
