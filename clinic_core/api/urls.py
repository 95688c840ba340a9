# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from clinic_core.appointments.api.views import AppointmentStatusListView, AppointmentViewSet
from clinic_core.audit.api.views import AuditEventViewSet
from clinic_core.growth.api.views import (
    SomatometryConfigPresetView,
    SomatometryConfigView,
    SomatometryRecordViewSet,
    SomatometryViewSet,
)
from clinic_core.iam.api.auth import LoginView, LogoutView, RefreshView
from clinic_core.iam.api.me import MeView
from clinic_core.patients.api.views import PatientViewSet

router = DefaultRouter()

router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"appointments", AppointmentViewSet, basename="appointments")
router.register(r"somatometry/records", SomatometryRecordViewSet, basename="somatometry-records")
router.register(r"somatometry", SomatometryViewSet, basename="somatometry")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # Auth + /me
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    path("appointment-statuses/", AppointmentStatusListView.as_view(), name="appointment-statuses"),

    path("somatometry/config/", SomatometryConfigView.as_view(), name="somatometry-config"),
    path("somatometry/config/preset/", SomatometryConfigPresetView.as_view(), name="somatometry-config-preset"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
