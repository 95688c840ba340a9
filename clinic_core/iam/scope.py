# clinic_core/iam/scope.py
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from rest_framework.exceptions import PermissionDenied, ValidationError

from clinic_core.iam.services import membership


@dataclass(frozen=True)
class Scope:
    business_unit_id: UUID


# Preferred header name (what we standardize on)
HDR_BUSINESS_UNIT = "X-Business-Unit-Id"

# Short variant used by older clients
HDR_BUSINESS_UNIT_SHORT = "X-BU-Id"

MISSING_SCOPE_MSG = "Missing scope header. Provide X-Business-Unit-Id."
INVALID_SCOPE_MSG = "Invalid scope header. Provide a valid UUID for X-Business-Unit-Id."
NOT_A_MEMBER_MSG = "You do not have access to the selected business unit."


def parse_uuid(value) -> UUID | None:
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def get_header(request, name: str) -> str | None:
    """
    request.headers is case-insensitive; fall back to META for RequestFactory/pytest.
    """
    headers = getattr(request, "headers", None)
    if headers is not None:
        v = headers.get(name)
        if v:
            return v
    meta_key = "HTTP_" + name.upper().replace("-", "_")
    return request.META.get(meta_key)


def raw_business_unit_header(request) -> str | None:
    return get_header(request, HDR_BUSINESS_UNIT) or get_header(request, HDR_BUSINESS_UNIT_SHORT)


def resolve_scope_from_headers(request) -> Scope | None:
    """
    Reads the scope header.
    - If absent: returns None.
    - If present but not a UUID: raises 400 ValidationError with INVALID_SCOPE_MSG.
    """
    raw = raw_business_unit_header(request)
    if not raw:
        return None

    business_unit_id = parse_uuid(raw)
    if business_unit_id is None:
        raise ValidationError(INVALID_SCOPE_MSG)
    return Scope(business_unit_id=business_unit_id)


def require_scope_from_headers(request) -> Scope:
    scope = resolve_scope_from_headers(request)
    if scope is None:
        raise ValidationError(MISSING_SCOPE_MSG)
    return scope


def assert_user_membership(user, scope: Scope) -> None:
    """
    Ensures user is an active member of the business unit. Raises 403 if not.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise PermissionDenied("Authentication required to set scope.")

    ok = membership.is_user_member_of_business_unit(
        user_id=user.id,
        business_unit_id=scope.business_unit_id,
    )
    if not ok:
        raise PermissionDenied(NOT_A_MEMBER_MSG)


def apply_scope_from_headers(request, user=None) -> Scope | None:
    """
    Used by the auth layer (CookieOrHeaderJWTAuthentication).

    If the scope header is present:
      - validates it is a UUID
      - verifies user membership
      - sets request.business_unit_id and request.scope

    If no header: returns None and does nothing.
    """
    scope = resolve_scope_from_headers(request)
    if scope is None:
        return None

    u = user or getattr(request, "user", None)
    assert_user_membership(u, scope)

    request.business_unit_id = scope.business_unit_id
    request.scope = scope
    return scope
