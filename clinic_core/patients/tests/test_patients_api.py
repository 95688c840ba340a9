import pytest

from clinic_core.audit.models import AuditEvent
from clinic_core.patients.models import Patient
from clinic_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db

PAYLOAD = {
    "first_name": "Luis",
    "paternal_surname": "Perez",
    "maternal_surname": "Ruiz",
    "sex": "M",
    "mrn": "MRN-0002",
    "date_of_birth": "2021-06-01",
    "phone": "5550001111",
}


def test_create_patient(api_client, business_unit):
    r = api_client.post("/api/v1/patients/", PAYLOAD, format="json", **scoped(business_unit))

    assert r.status_code == 201
    assert r.data["full_name"] == "Luis Perez Ruiz"
    assert r.data["business_unit_id"] == str(business_unit.id)
    assert AuditEvent.objects.filter(event_code="patient.created", entity_id=r.data["id"]).exists()


def test_duplicate_mrn_is_rejected(api_client, business_unit, patient):
    r = api_client.post(
        "/api/v1/patients/",
        {**PAYLOAD, "mrn": patient.mrn},
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 400
    assert "MRN" in r.data["error"]["message"]


def test_same_mrn_allowed_in_other_business_unit(patient, other_business_unit, make_member):
    from clinic_core.iam.models import BusinessUnitMembership
    from rest_framework.test import APIClient

    doctor = make_member("doctor")
    BusinessUnitMembership.objects.create(user=doctor, business_unit=other_business_unit, role_code="doctor")
    client = APIClient()
    client.force_authenticate(user=doctor)

    r = client.post(
        "/api/v1/patients/",
        {**PAYLOAD, "mrn": patient.mrn},
        format="json",
        **scoped(other_business_unit),
    )
    assert r.status_code == 201


def test_future_date_of_birth_is_rejected(api_client, business_unit):
    r = api_client.post(
        "/api/v1/patients/",
        {**PAYLOAD, "date_of_birth": "2999-01-01"},
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"


def test_retrieve_and_patch_patient(api_client, business_unit, patient):
    r = api_client.get(f"/api/v1/patients/{patient.id}/", **scoped(business_unit))
    assert r.status_code == 200
    assert r.data["mrn"] == "MRN-TEST-001"

    r = api_client.patch(
        f"/api/v1/patients/{patient.id}/",
        {"phone": "5551234567"},
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 200
    assert r.data["phone"] == "5551234567"

    patient.refresh_from_db()
    assert patient.phone == "5551234567"
    event = AuditEvent.objects.get(event_code="patient.updated", entity_id=patient.id)
    assert event.metadata == {"updated_fields": ["phone"]}


def test_empty_patch_is_rejected(api_client, business_unit, patient):
    r = api_client.patch(f"/api/v1/patients/{patient.id}/", {}, format="json", **scoped(business_unit))
    assert r.status_code == 400


def test_search_by_name_and_mrn(api_client, business_unit, patient):
    Patient.objects.create(
        business_unit_id=business_unit.id,
        first_name="Mario",
        paternal_surname="Soto",
        sex="M",
        mrn="MRN-XYZ",
    )

    r = api_client.get("/api/v1/patients/?q=lopez", **scoped(business_unit))
    assert [p["id"] for p in r.data] == [str(patient.id)]

    r = api_client.get("/api/v1/patients/?q=xyz", **scoped(business_unit))
    assert [p["mrn"] for p in r.data] == ["MRN-XYZ"]

    r = api_client.get("/api/v1/patients/?page=1", **scoped(business_unit))
    assert r.data["count"] == 2


def test_patient_from_other_business_unit_is_404(api_client, business_unit, other_business_unit):
    foreign = Patient.objects.create(
        business_unit_id=other_business_unit.id,
        first_name="Eva",
        paternal_surname="Mora",
        sex="F",
        mrn="MRN-FOREIGN",
    )
    r = api_client.get(f"/api/v1/patients/{foreign.id}/", **scoped(business_unit))
    assert r.status_code == 404


def test_readonly_cannot_create(business_unit, make_member):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=make_member("readonly"))

    r = client.post("/api/v1/patients/", PAYLOAD, format="json", **scoped(business_unit))
    assert r.status_code == 403

    r = client.get("/api/v1/patients/", **scoped(business_unit))
    assert r.status_code == 200
