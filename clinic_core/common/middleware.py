from __future__ import annotations

import logging

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from clinic_core.common.api.exceptions import build_error_envelope
from clinic_core.iam.scope import (
    INVALID_SCOPE_MSG,
    MISSING_SCOPE_MSG,
    NOT_A_MEMBER_MSG,
    Scope,
    parse_uuid,
    raw_business_unit_header,
)

logger = logging.getLogger(__name__)


class BusinessUnitScopeMiddleware(MiddlewareMixin):
    """
    Enforces business-unit scope for API requests.

    Behavior:
      - Enforced for both /api/v1/* and /api/* (alias).
      - Most endpoints require X-Business-Unit-Id (400 if missing).
      - /me/ and /appointment-statuses/: header is OPTIONAL, but if provided it must be
        valid and the user must be a member.
      - Auth endpoints (login/refresh/logout): scope is ignored.
      - Docs/schema/admin endpoints: public.
      - Invalid UUID -> 400
      - User not a member -> 403
      - On success -> attaches request.scope and request.business_unit_id
    """

    ENFORCED_PREFIXES = ("/api/v1/", "/api/")

    PUBLIC_PATH_PREFIXES = (
        "/admin/",
        "/api/docs/",
        "/api/schema/",
    )

    AUTH_PATH_SUFFIXES = (
        "/auth/login/",
        "/auth/refresh/",
        "/auth/logout/",
    )

    ALLOW_NO_SCOPE_EXACT_PATHS = (
        "/api/v1/",
        "/api/",
    )

    ALLOW_NO_SCOPE_SUFFIXES = (
        "/me/",
        "/appointment-statuses/",
    )

    def _is_api_path(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.ENFORCED_PREFIXES)

    def _starts_with_any(self, path: str, prefixes: tuple[str, ...]) -> bool:
        return any(path.startswith(p) for p in prefixes)

    def _endswith_any(self, path: str, suffixes: tuple[str, ...]) -> bool:
        return any(path.endswith(s) for s in suffixes)

    def _json_error(self, request, *, status_code: int, code: str, message: str, details=None) -> JsonResponse:
        return JsonResponse(
            build_error_envelope(
                request=request,
                code=code,
                message=message,
                details=details,
            ),
            status=status_code,
        )

    def process_request(self, request):
        request.scope = None
        request.business_unit_id = None

        path = getattr(request, "path", "") or ""

        if self._starts_with_any(path, self.PUBLIC_PATH_PREFIXES):
            return None

        if not self._is_api_path(path):
            return None

        if path in self.ALLOW_NO_SCOPE_EXACT_PATHS:
            return None

        if self._endswith_any(path, self.AUTH_PATH_SUFFIXES):
            return None

        # Token-authenticated users are resolved later by DRF; the auth class applies scope for them.
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return None

        raw = raw_business_unit_header(request)
        if not raw:
            if self._endswith_any(path, self.ALLOW_NO_SCOPE_SUFFIXES):
                return None
            return self._json_error(
                request,
                status_code=400,
                code="validation_error",
                message=MISSING_SCOPE_MSG,
            )

        business_unit_id = parse_uuid(raw)
        if business_unit_id is None:
            return self._json_error(
                request,
                status_code=400,
                code="validation_error",
                message=INVALID_SCOPE_MSG,
            )

        from clinic_core.iam.services import membership

        if not membership.is_user_member_of_business_unit(user_id=user.id, business_unit_id=business_unit_id):
            logger.warning(f"User {user.id} denied access to business unit {business_unit_id}")
            return self._json_error(
                request,
                status_code=403,
                code="permission_denied",
                message=NOT_A_MEMBER_MSG,
            )

        request.scope = Scope(business_unit_id=business_unit_id)
        request.business_unit_id = business_unit_id
        return None
