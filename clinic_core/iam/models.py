# clinic_core/iam/models.py
import uuid

from django.conf import settings
from django.db import models

from clinic_core.business_units.models import BusinessUnit


class BusinessUnitMembership(models.Model):
    """
    Assigns a user to a business unit with a role code (ADMIN, DOCTOR, NURSE, RECEPTION, READONLY).
    This is the enforcement point for business-unit level access.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="clinic_memberships")
    business_unit = models.ForeignKey(BusinessUnit, on_delete=models.PROTECT, related_name="memberships")

    role_code = models.CharField(max_length=32, blank=True, default="")
    is_primary = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_business_unit_membership"
        constraints = [
            models.UniqueConstraint(
                fields=["business_unit", "user"],
                name="uq_business_unit_user_membership",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.business_unit_id} ({self.role_code or '-'})"
