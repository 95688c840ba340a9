# clinic_core/iam/services/membership.py
from __future__ import annotations

from uuid import UUID

from clinic_core.iam.models import BusinessUnitMembership


def list_user_business_units(user_id: int) -> list[dict]:
    """
    Return business-unit memberships for the /me response.
    """
    qs = (
        BusinessUnitMembership.objects.select_related("business_unit")
        .filter(user_id=user_id, is_active=True, business_unit__is_active=True)
        .order_by("business_unit__name")
    )

    items: list[dict] = []
    for m in qs:
        bu = m.business_unit
        items.append(
            {
                "business_unit_id": str(bu.id),
                "business_unit_code": bu.code,
                "business_unit_name": bu.name,
                "role_code": m.role_code or None,
                "is_primary": bool(m.is_primary),
            }
        )
    return items


def is_user_member_of_business_unit(*, user_id: int, business_unit_id: UUID) -> bool:
    """
    Validate user -> business unit membership.
    Single source of truth used by scope enforcement.
    """
    return BusinessUnitMembership.objects.filter(
        is_active=True,
        user_id=user_id,
        business_unit_id=business_unit_id,
        business_unit__is_active=True,
    ).exists()


def membership_role(*, user_id: int, business_unit_id: UUID) -> str | None:
    return (
        BusinessUnitMembership.objects.filter(
            is_active=True,
            user_id=user_id,
            business_unit_id=business_unit_id,
        )
        .values_list("role_code", flat=True)
        .first()
    ) or None
