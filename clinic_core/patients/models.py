# clinic_core/patients/models.py
from django.db import models

from clinic_core.common.models import ScopedModel


class Sex(models.TextChoices):
    MALE = "M", "Male"
    FEMALE = "F", "Female"


class Patient(ScopedModel):
    """
    Patient record scoped to a business unit.
    """
    first_name = models.CharField(max_length=128)
    paternal_surname = models.CharField(max_length=128)
    maternal_surname = models.CharField(max_length=128, blank=True)

    date_of_birth = models.DateField(null=True, blank=True)
    sex = models.CharField(max_length=1, choices=Sex.choices)

    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)

    # business-unit local medical record number
    mrn = models.CharField(max_length=64)

    class Meta:
        db_table = "patients_patient"
        constraints = [
            models.UniqueConstraint(
                fields=["business_unit_id", "mrn"],
                name="uq_patient_business_unit_mrn",
            ),
        ]
        indexes = [
            models.Index(fields=["business_unit_id", "paternal_surname"]),
            models.Index(fields=["business_unit_id", "phone"]),
        ]

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.paternal_surname, self.maternal_surname) if p)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.mrn})"
