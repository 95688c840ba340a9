# clinic_core/patients/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic_core.audit.services import AuditService
from clinic_core.patients.models import Patient, Sex

logger = logging.getLogger(__name__)

DUPLICATE_MRN_MSG = "MRN already exists for this business unit."


def _validate(*, sex: str | None, date_of_birth) -> None:
    if sex is not None and sex not in Sex.values:
        raise ValidationError({"sex": "Sex must be 'M' or 'F'."})
    if date_of_birth is not None and date_of_birth > timezone.localdate():
        raise ValidationError({"date_of_birth": "Date of birth cannot be in the future."})


class PatientService:
    UPDATABLE_FIELDS = {
        "first_name",
        "paternal_surname",
        "maternal_surname",
        "mrn",
        "phone",
        "email",
        "sex",
        "date_of_birth",
    }

    @staticmethod
    @transaction.atomic
    def create_patient(
        *,
        business_unit_id: UUID,
        actor_user_id: int | None,
        first_name: str,
        paternal_surname: str,
        sex: str,
        mrn: str,
        maternal_surname: str = "",
        phone: str = "",
        email: str = "",
        date_of_birth=None,
    ) -> Patient:
        _validate(sex=sex, date_of_birth=date_of_birth)

        try:
            with transaction.atomic():
                patient = Patient.objects.create(
                    business_unit_id=business_unit_id,
                    first_name=first_name,
                    paternal_surname=paternal_surname,
                    maternal_surname=maternal_surname or "",
                    sex=sex,
                    mrn=mrn,
                    phone=phone or "",
                    email=email or "",
                    date_of_birth=date_of_birth,
                )
        except IntegrityError:
            raise ValueError(DUPLICATE_MRN_MSG)

        AuditService.log(
            event_code="patient.created",
            entity_type="Patient",
            entity_id=patient.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"mrn": mrn},
        )
        logger.info(f"Patient {patient.id} created in business unit {business_unit_id}")
        return patient

    @staticmethod
    @transaction.atomic
    def update_patient(
        *,
        business_unit_id: UUID,
        actor_user_id: int | None,
        patient_id: UUID,
        data: dict,
    ) -> Patient:
        patient = Patient.objects.select_for_update().get(id=patient_id, business_unit_id=business_unit_id)

        updates = {k: v for k, v in (data or {}).items() if k in PatientService.UPDATABLE_FIELDS}
        _validate(sex=updates.get("sex"), date_of_birth=updates.get("date_of_birth"))

        for k, v in updates.items():
            setattr(patient, k, v)

        try:
            with transaction.atomic():
                patient.save()
        except IntegrityError:
            raise ValueError(DUPLICATE_MRN_MSG)

        AuditService.log(
            event_code="patient.updated",
            entity_type="Patient",
            entity_id=patient.id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return patient
