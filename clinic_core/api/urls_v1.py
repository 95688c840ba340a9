# clinic_core/api/urls_v1.py
# Schema-only urlconf so the OpenAPI document lists each endpoint once, under /api/v1/.
from django.urls import include, path

urlpatterns = [
    path("api/v1/", include("clinic_core.api.urls")),
]
