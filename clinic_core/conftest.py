# clinic_core/conftest.py
import datetime

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from clinic_core.business_units.models import BusinessUnit
from clinic_core.iam.models import BusinessUnitMembership
from clinic_core.patients.models import Patient, Sex


@pytest.fixture
def business_unit(db):
    return BusinessUnit.objects.create(code="main-clinic", name="Main Clinic")


@pytest.fixture
def other_business_unit(db):
    return BusinessUnit.objects.create(code="other-clinic", name="Other Clinic")


@pytest.fixture
def user(db, business_unit):
    """
    Test user with ADMIN group + membership in business_unit.
    """
    User = get_user_model()
    user = User.objects.create_user(
        username="testuser",
        password="testpass",
        is_active=True,
    )

    admin_group, _ = Group.objects.get_or_create(name="ADMIN")
    user.groups.add(admin_group)

    BusinessUnitMembership.objects.create(
        user=user,
        business_unit=business_unit,
        role_code="admin",
        is_primary=True,
        is_active=True,
    )

    return user


@pytest.fixture
def make_member(db, business_unit):
    """
    Build a non-admin user whose only role comes from the membership role_code.
    """
    User = get_user_model()

    def _make(role_code: str, username: str | None = None):
        u = User.objects.create_user(username=username or f"{role_code}-user", password="testpass")
        BusinessUnitMembership.objects.create(user=u, business_unit=business_unit, role_code=role_code)
        return u

    return _make


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def patient(db, business_unit):
    return Patient.objects.create(
        business_unit_id=business_unit.id,
        first_name="Ana",
        paternal_surname="Lopez",
        maternal_surname="Garcia",
        sex=Sex.FEMALE,
        date_of_birth=datetime.date(2022, 3, 15),
        mrn="MRN-TEST-001",
    )
