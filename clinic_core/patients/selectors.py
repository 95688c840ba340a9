# clinic_core/patients/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Q, QuerySet

from clinic_core.patients.models import Patient


class PatientNotFound(Exception):
    pass


def get_patient(*, business_unit_id: UUID, patient_id: UUID) -> Patient:
    try:
        return Patient.objects.get(id=patient_id, business_unit_id=business_unit_id)
    except Patient.DoesNotExist:
        raise PatientNotFound()


def search_patients(*, business_unit_id: UUID, q: str | None = None) -> QuerySet[Patient]:
    qs = Patient.objects.filter(business_unit_id=business_unit_id)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(
            Q(first_name__icontains=qv)
            | Q(paternal_surname__icontains=qv)
            | Q(maternal_surname__icontains=qv)
            | Q(mrn__icontains=qv)
            | Q(phone__icontains=qv)
            | Q(email__icontains=qv)
        )

    return qs.order_by("-created_at")
