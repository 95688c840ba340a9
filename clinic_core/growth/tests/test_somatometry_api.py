import datetime

import pytest
from rest_framework.test import APIClient

from clinic_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def _record(api_client, business_unit, patient, **overrides):
    data = {
        "patient_id": str(patient.id),
        "measurement_date": datetime.date.today().isoformat(),
        "weight": "14.00",
        "height": "96.00",
    }
    data.update(overrides)
    r = api_client.post("/api/v1/somatometry/records/", data, format="json", **scoped(business_unit))
    assert r.status_code == 201, r.data
    return r.data


def test_create_ignores_client_bmi_and_age(api_client, business_unit, patient):
    data = _record(api_client, business_unit, patient, bmi="99.99", age_months=1)
    assert data["bmi"] == "15.19"
    assert data["age_months"] > 1


def test_out_of_range_measurement_is_400(api_client, business_unit, patient):
    r = api_client.post(
        "/api/v1/somatometry/records/",
        {
            "patient_id": str(patient.id),
            "measurement_date": datetime.date.today().isoformat(),
            "weight": "250.00",
            "height": "96.00",
        },
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 400, r.data
    assert r.data["error"]["code"] == "validation_error"
    assert "weight" in r.data["error"]["details"]


def test_list_filters_by_patient(api_client, business_unit, patient, infant):
    _record(api_client, business_unit, patient)
    _record(api_client, business_unit, infant, weight="7.50", height="66.00", head_circumference="43.00")

    r = api_client.get(f"/api/v1/somatometry/records/?patient={patient.id}", **scoped(business_unit))
    assert r.status_code == 200
    assert len(r.data) == 1
    assert r.data[0]["patient_id"] == str(patient.id)

    r = api_client.get("/api/v1/somatometry/records/?age_max=12", **scoped(business_unit))
    assert [x["patient_id"] for x in r.data] == [str(infant.id)]


def test_list_rejects_bad_filter(api_client, business_unit):
    r = api_client.get("/api/v1/somatometry/records/?date_from=not-a-date", **scoped(business_unit))
    assert r.status_code == 400


def test_patch_and_delete(api_client, business_unit, patient):
    rec = _record(api_client, business_unit, patient)

    p = api_client.patch(
        f"/api/v1/somatometry/records/{rec['id']}/",
        {"notes": "After lunch"},
        format="json",
        **scoped(business_unit),
    )
    assert p.status_code == 200, p.data
    assert p.data["notes"] == "After lunch"

    d = api_client.delete(f"/api/v1/somatometry/records/{rec['id']}/", **scoped(business_unit))
    assert d.status_code == 204

    g = api_client.get(f"/api/v1/somatometry/records/{rec['id']}/", **scoped(business_unit))
    assert g.status_code == 404


def test_record_analysis_endpoint(api_client, business_unit, patient, reference_rows):
    rec = _record(api_client, business_unit, patient)
    r = api_client.get(f"/api/v1/somatometry/records/{rec['id']}/analysis/", **scoped(business_unit))
    assert r.status_code == 200, r.data
    assert r.data["indicators"]["weight"]["percentile"] == 50.0
    assert r.data["indicators"]["weight"]["status"] == "normal"


def test_analyze_preview(api_client, business_unit, patient, reference_rows):
    r = api_client.post(
        "/api/v1/somatometry/analyze/",
        {
            "patient_id": str(patient.id),
            "measurement_date": datetime.date.today().isoformat(),
            "weight": "19.00",
            "height": "96.00",
        },
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 200, r.data
    assert r.data["indicators"]["weight"]["percentile"] == 97.0
    assert r.data["indicators"]["weight"]["status"] == "overweight"
    assert any("Weight above" in a for a in r.data["alerts"])


def test_statistics_endpoint(api_client, business_unit, patient):
    _record(api_client, business_unit, patient)
    r = api_client.get(f"/api/v1/somatometry/statistics/?patient={patient.id}", **scoped(business_unit))
    assert r.status_code == 200, r.data
    assert r.data["total_measurements"] == 1
    assert r.data["trend"] == "stable"


def test_statistics_unknown_patient_is_404(api_client, business_unit):
    r = api_client.get(
        "/api/v1/somatometry/statistics/?patient=00000000-0000-0000-0000-000000000000",
        **scoped(business_unit),
    )
    assert r.status_code == 404


def test_who_chart_endpoint(api_client, business_unit, reference_rows):
    r = api_client.get("/api/v1/somatometry/who-chart/?indicator=height&sex=F&age_to=240", **scoped(business_unit))
    assert r.status_code == 200, r.data
    assert r.data["p97"] == [104.0]


def test_slider_ranges_endpoint(api_client, business_unit, patient, reference_rows):
    r = api_client.get(f"/api/v1/somatometry/slider-ranges/?patient={patient.id}", **scoped(business_unit))
    assert r.status_code == 200, r.data
    assert r.data["age_months"] == reference_rows["age_months"]
    assert r.data["ranges"]["weight"]["normal_min"] == 12.5


def test_config_get_patch_and_preset(api_client, business_unit):
    g = api_client.get("/api/v1/somatometry/config/", **scoped(business_unit))
    assert g.status_code == 200, g.data
    assert g.data["bmi_obesity_threshold"] == 30.0

    p = api_client.patch(
        "/api/v1/somatometry/config/",
        {"alert_percentile_above": 95},
        format="json",
        **scoped(business_unit),
    )
    assert p.status_code == 200, p.data
    assert p.data["alert_percentile_above"] == 95

    bad = api_client.patch(
        "/api/v1/somatometry/config/",
        {"bmi_underweight_threshold": 26.0},
        format="json",
        **scoped(business_unit),
    )
    assert bad.status_code == 400

    pr = api_client.post("/api/v1/somatometry/config/preset/", {"preset": "liberal"}, format="json", **scoped(business_unit))
    assert pr.status_code == 200, pr.data
    assert pr.data["show_growth_alerts"] is False


def test_nurse_cannot_change_config_but_can_read(make_member, business_unit):
    client = APIClient()
    client.force_authenticate(user=make_member("nurse"))

    assert client.get("/api/v1/somatometry/config/", **scoped(business_unit)).status_code == 200
    r = client.patch(
        "/api/v1/somatometry/config/",
        {"show_growth_alerts": False},
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 403


def test_reception_cannot_record_measurements(make_member, business_unit, patient):
    client = APIClient()
    client.force_authenticate(user=make_member("reception"))
    r = client.post(
        "/api/v1/somatometry/records/",
        {
            "patient_id": str(patient.id),
            "measurement_date": datetime.date.today().isoformat(),
            "weight": "14.00",
            "height": "96.00",
        },
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 403


@pytest.mark.django_db(transaction=True)
def test_implausible_height_is_400_and_nothing_is_stored(api_client, business_unit, patient):
    from clinic_core.growth.models import SomatometryRecord

    r = api_client.post(
        "/api/v1/somatometry/records/",
        {
            "patient_id": str(patient.id),
            "measurement_date": datetime.date.today().isoformat(),
            "weight": "150.00",
            "height": "5.00",
        },
        format="json",
        **scoped(business_unit),
    )
    assert r.status_code == 400, r.data
    assert "height" in r.data["error"]["details"]
    assert not SomatometryRecord.objects.exists()


def test_bmi_beyond_stored_range_is_400_on_create_patch_and_analyze(api_client, business_unit, patient):
    payload = {
        "patient_id": str(patient.id),
        "measurement_date": datetime.date.today().isoformat(),
        "weight": "150.00",
        "height": "40.00",
    }
    r = api_client.post("/api/v1/somatometry/records/", payload, format="json", **scoped(business_unit))
    assert r.status_code == 400, r.data
    assert "bmi" in r.data["error"]["details"]

    r = api_client.post("/api/v1/somatometry/analyze/", payload, format="json", **scoped(business_unit))
    assert r.status_code == 400, r.data
    assert "bmi" in r.data["error"]["details"]

    rec = _record(api_client, business_unit, patient)
    p = api_client.patch(
        f"/api/v1/somatometry/records/{rec['id']}/",
        {"weight": "150.00", "height": "40.00"},
        format="json",
        **scoped(business_unit),
    )
    assert p.status_code == 400, p.data
    assert "bmi" in p.data["error"]["details"]


def test_config_reference_standard_flags(api_client, business_unit):
    g = api_client.get("/api/v1/somatometry/config/", **scoped(business_unit))
    assert g.status_code == 200, g.data
    assert g.data["use_who_standards"] is True
    assert g.data["use_cdc_standards"] is False
    assert g.data["allow_manual_age_override"] is False
    assert g.data["percentile_source"] == "WHO"

    p = api_client.patch(
        "/api/v1/somatometry/config/",
        {"use_cdc_standards": True, "allow_manual_age_override": True},
        format="json",
        **scoped(business_unit),
    )
    assert p.status_code == 200, p.data
    assert p.data["use_cdc_standards"] is True
    assert p.data["allow_manual_age_override"] is True
    assert p.data["percentile_source"] == "BOTH"

    # presets only touch thresholds and alert rules
    pr = api_client.post("/api/v1/somatometry/config/preset/", {"preset": "standard"}, format="json", **scoped(business_unit))
    assert pr.data["use_cdc_standards"] is True
    assert pr.data["allow_manual_age_override"] is True

    bad = api_client.patch(
        "/api/v1/somatometry/config/",
        {"use_who_standards": False, "use_cdc_standards": False},
        format="json",
        **scoped(business_unit),
    )
    assert bad.status_code == 400
    assert "use_who_standards" in bad.data["error"]["details"]
