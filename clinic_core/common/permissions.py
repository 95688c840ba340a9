# clinic_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_NURSE = "NURSE"
ROLE_RECEPTION = "RECEPTION"
ROLE_READONLY = "READONLY"

ALL_ROLES = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_READONLY}
CLINICAL_ROLES = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE}
FRONT_DESK_ROLES = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION}


def user_roles(user, business_unit_id=None) -> Set[str]:
    """
    Resolve roles from:
    1) Django groups: user.groups
    2) The role_code of the user's membership in the active business unit (if known)

    Default behavior:
    - Superusers are treated as ADMIN.
    - An authenticated user with no roles is treated as READONLY.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if business_unit_id is not None:
        from clinic_core.iam.services import membership

        role_code = membership.membership_role(user_id=user.id, business_unit_id=business_unit_id)
        if role_code:
            roles.add(role_code.upper())

    if not roles:
        roles.add(ROLE_READONLY)

    return roles


def has_any_role(user, allowed: Set[str], business_unit_id=None) -> bool:
    roles = user_roles(user, business_unit_id)
    return ROLE_ADMIN in roles or bool(roles & allowed)


def ensure_scope_on_request(request) -> bool:
    """
    Ensure request.business_unit_id exists and the user belongs to it.

    Permissions must not raise ValidationError (it becomes 400);
    return False when missing/invalid/not-a-member -> DRF returns 403.
    """
    from clinic_core.iam.scope import parse_uuid, raw_business_unit_header
    from clinic_core.iam.services import membership

    business_unit_id = parse_uuid(getattr(request, "business_unit_id", None) or raw_business_unit_header(request))
    if business_unit_id is None:
        return False

    user = getattr(request, "user", None)
    if not getattr(user, "is_superuser", False):
        if not membership.is_user_member_of_business_unit(user_id=user.id, business_unit_id=business_unit_id):
            return False

    setattr(request, "business_unit_id", business_unit_id)
    return True


class BaseRolePermission(BasePermission):
    """
    Base permission class for role-based access control.

    - Requires authentication and membership in the requested business unit.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - If the action is unknown and the request is SAFE, fall back to list/retrieve.
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "destroy": {ROLE_ADMIN},
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        # scope is enforced here so a missing header is a 403 rather than a 400 from the view
        if not ensure_scope_on_request(request):
            return False

        roles = user_roles(user, getattr(request, "business_unit_id", None))

        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            read_action = "retrieve" if is_detail else "list"
            allowed = self.allowed_roles_per_action.get(read_action)

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny by default
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class PatientPermission(BaseRolePermission):
    """Permissions for Patient management"""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": FRONT_DESK_ROLES,
        "update": FRONT_DESK_ROLES,
        "partial_update": FRONT_DESK_ROLES,
        "destroy": {ROLE_ADMIN},
    }


class AppointmentPermission(BaseRolePermission):
    """Permissions for Appointment scheduling and status workflow"""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "action_menu": ALL_ROLES,
        "allowed_transitions": ALL_ROLES,
        "history": ALL_ROLES,
        "availability": ALL_ROLES,
        "stats": ALL_ROLES,
        "create": FRONT_DESK_ROLES,
        "update": FRONT_DESK_ROLES,
        "partial_update": FRONT_DESK_ROLES,
        "reschedule": FRONT_DESK_ROLES,
        "change_status": FRONT_DESK_ROLES,
        "cancel": FRONT_DESK_ROLES,
        "notes": FRONT_DESK_ROLES,
        "destroy": {ROLE_ADMIN},
    }


class SomatometryPermission(BaseRolePermission):
    """Permissions for growth measurements and analysis"""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "analysis": ALL_ROLES,
        "statistics": ALL_ROLES,
        "who_chart": ALL_ROLES,
        "slider_ranges": ALL_ROLES,
        "analyze": CLINICAL_ROLES,
        "create": CLINICAL_ROLES,
        "update": CLINICAL_ROLES,
        "partial_update": CLINICAL_ROLES,
        "destroy": {ROLE_ADMIN, ROLE_DOCTOR},
    }


class SomatometryConfigPermission(BaseRolePermission):
    """Business-unit growth configuration: everyone reads, ADMIN writes."""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "partial_update": {ROLE_ADMIN},
        "create": {ROLE_ADMIN},
    }


class AuditPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN, ROLE_DOCTOR},
    }
