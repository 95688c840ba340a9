import pytest
from rest_framework.test import APIClient

from clinic_core.tests.helpers import scoped


@pytest.mark.django_db
def test_login_sets_auth_cookies(user):
    client = APIClient()
    r = client.post("/api/v1/auth/login/", {"username": "testuser", "password": "testpass"}, format="json")

    assert r.status_code == 200
    assert r.data == {"detail": "login ok"}
    assert r.cookies["clinic_access"].value
    assert r.cookies["clinic_refresh"]["httponly"]


@pytest.mark.django_db
def test_login_with_bad_password_is_rejected(user):
    client = APIClient()
    r = client.post("/api/v1/auth/login/", {"username": "testuser", "password": "wrong"}, format="json")
    assert r.status_code == 401
    assert "error" in r.data


@pytest.mark.django_db
def test_cookie_authenticates_scoped_requests(user, business_unit, patient):
    client = APIClient()
    client.post("/api/v1/auth/login/", {"username": "testuser", "password": "testpass"}, format="json")

    r = client.get("/api/v1/patients/", **scoped(business_unit))
    assert r.status_code == 200
    assert r.data[0]["mrn"] == "MRN-TEST-001"


@pytest.mark.django_db
def test_bearer_token_with_foreign_scope_is_forbidden(user, other_business_unit):
    client = APIClient()
    r = client.post("/api/v1/auth/login/", {"username": "testuser", "password": "testpass"}, format="json")
    access = r.cookies["clinic_access"].value

    bearer = APIClient()
    bearer.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    r = bearer.get("/api/v1/patients/", **scoped(other_business_unit))
    assert r.status_code == 403


@pytest.mark.django_db
def test_logout_clears_cookies(api_client):
    r = api_client.post("/api/v1/auth/logout/")
    assert r.status_code == 200
    assert r.cookies["clinic_access"].value == ""


@pytest.mark.django_db
def test_me_without_scope_lists_memberships(api_client, business_unit):
    r = api_client.get("/api/v1/me/")
    assert r.status_code == 200
    assert r.data["user"]["username"] == "testuser"
    assert r.data["active_scope"] is None

    memberships = r.data["memberships"]
    assert len(memberships) == 1
    assert memberships[0]["business_unit_id"] == str(business_unit.id)
    assert memberships[0]["role_code"] == "admin"
    assert memberships[0]["is_primary"] is True


@pytest.mark.django_db
def test_me_with_scope_reports_active_scope(api_client, business_unit):
    r = api_client.get("/api/v1/me/", **scoped(business_unit))
    assert r.status_code == 200
    assert r.data["active_scope"] == {"business_unit_id": str(business_unit.id)}


@pytest.mark.django_db
def test_me_with_foreign_scope_is_forbidden(api_client, other_business_unit):
    r = api_client.get("/api/v1/me/", **scoped(other_business_unit))
    assert r.status_code == 403
    assert r.data["error"]["code"] == "permission_denied"


@pytest.mark.django_db
def test_me_with_malformed_scope_is_400(api_client):
    r = api_client.get("/api/v1/me/", HTTP_X_BUSINESS_UNIT_ID="nope")
    assert r.status_code == 400
    assert "Invalid scope header" in r.data["error"]["message"]


@pytest.mark.django_db
def test_scope_switch(api_client, business_unit, other_business_unit):
    r = api_client.post("/api/v1/me/", {"business_unit_id": str(business_unit.id)}, format="json")
    assert r.status_code == 200
    assert r.data["active_scope"] == {"business_unit_id": str(business_unit.id)}

    r = api_client.post("/api/v1/me/", {"business_unit_id": str(other_business_unit.id)}, format="json")
    assert r.status_code == 403
