# clinic_core/common/scope.py
from __future__ import annotations

from rest_framework.exceptions import ValidationError

from clinic_core.iam.scope import (
    INVALID_SCOPE_MSG,
    MISSING_SCOPE_MSG,
    Scope,
    parse_uuid,
    raw_business_unit_header,
)


def resolve_scope(request) -> Scope | None:
    """
    Returns Scope when the business unit is known for this request.
    Prefers the value attached by middleware/auth, then falls back to the header.
    Returns None if nothing is present.
    """
    attached = getattr(request, "business_unit_id", None)
    if attached:
        bu = parse_uuid(attached)
        if bu is not None:
            return Scope(business_unit_id=bu)

    raw = raw_business_unit_header(request)
    if not raw:
        return None

    bu = parse_uuid(raw)
    if bu is None:
        raise ValidationError({"detail": INVALID_SCOPE_MSG})
    return Scope(business_unit_id=bu)


def require_scope(request) -> Scope:
    """
    Views call this first. 400 if missing/invalid.
    Membership is enforced by the middleware/auth/permission layer, not here.
    """
    scope = resolve_scope(request)
    if scope is None:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})

    request.business_unit_id = scope.business_unit_id
    request.scope = scope
    return scope
