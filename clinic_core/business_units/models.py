# clinic_core/business_units/models.py
from __future__ import annotations

import uuid

from django.db import models


class BusinessUnit(models.Model):
    """
    A clinic or practice. Root of data scoping: every clinical row carries business_unit_id.
    NOT a ScopedModel (it *is* the scope).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)

    timezone = models.CharField(max_length=64, default="America/Mexico_City")

    phone = models.CharField(max_length=32, blank=True, default="")
    email = models.EmailField(blank=True, default="")

    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "business_units_business_unit"
        indexes = [
            models.Index(fields=["is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
