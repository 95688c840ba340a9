import json

import pytest
from django.contrib.auth.models import User
from django.test import RequestFactory
from rest_framework.test import APIClient

from clinic_core.common.middleware import BusinessUnitScopeMiddleware
from clinic_core.tests.helpers import scoped


@pytest.mark.django_db
def test_middleware_invalid_scope_returns_error_envelope():
    rf = RequestFactory()
    req = rf.get("/api/v1/patients/", HTTP_X_BUSINESS_UNIT_ID="not-a-uuid")
    req.user = User.objects.create_user(username="u2", password="pass123")

    mw = BusinessUnitScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "validation_error"
    assert "Invalid scope header" in body["error"]["message"]


@pytest.mark.django_db
def test_middleware_non_member_returns_403_envelope(business_unit):
    rf = RequestFactory()
    req = rf.get("/api/v1/patients/", **scoped(business_unit))
    req.user = User.objects.create_user(username="u3", password="pass123")

    mw = BusinessUnitScopeMiddleware(get_response=lambda r: None)
    resp = mw.process_request(req)

    assert resp is not None
    assert resp.status_code == 403
    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "permission_denied"


@pytest.mark.django_db
def test_middleware_member_gets_scope_attached(user, business_unit):
    rf = RequestFactory()
    req = rf.get("/api/v1/patients/", HTTP_X_BU_ID=str(business_unit.id))
    req.user = user

    mw = BusinessUnitScopeMiddleware(get_response=lambda r: None)
    assert mw.process_request(req) is None
    assert req.business_unit_id == business_unit.id
    assert req.scope.business_unit_id == business_unit.id


@pytest.mark.django_db
def test_middleware_me_does_not_require_scope():
    rf = RequestFactory()
    req = rf.get("/api/v1/me/")
    req.user = User.objects.create_user(username="u4", password="pass123")

    mw = BusinessUnitScopeMiddleware(get_response=lambda r: None)
    assert mw.process_request(req) is None


@pytest.mark.django_db
def test_api_without_scope_header_is_rejected(api_client):
    r = api_client.get("/api/v1/patients/")
    assert r.status_code == 403
    assert r.data["error"]["code"] == "permission_denied"


@pytest.mark.django_db
def test_api_non_member_is_rejected(other_business_unit):
    u = User.objects.create_user(username="outsider", password="pass123")
    client = APIClient()
    client.force_authenticate(user=u)

    r = client.get("/api/v1/patients/", **scoped(other_business_unit))
    assert r.status_code == 403


@pytest.mark.django_db
def test_unversioned_alias_serves_same_api(api_client, business_unit, patient):
    r = api_client.get("/api/patients/", **scoped(business_unit))
    assert r.status_code == 200
    assert [p["id"] for p in r.data] == [str(patient.id)]
