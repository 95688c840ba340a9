# clinic_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic_core.iam.api.schema_serializers import (
    MeResponseSerializer,
    ScopeSwitchRequestSerializer,
    ScopeSwitchResponseSerializer,
)
from clinic_core.iam.scope import NOT_A_MEMBER_MSG, assert_user_membership, resolve_scope_from_headers
from clinic_core.iam.services import membership


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Returns user info + memberships.
        The scope header is OPTIONAL here; if provided it MUST be valid and the user MUST be a member (400/403).
        """
        scope = resolve_scope_from_headers(request)
        if scope is not None:
            assert_user_membership(request.user, scope)
            request.scope = scope
            request.business_unit_id = scope.business_unit_id

        active_scope = None
        if scope is not None:
            active_scope = {"business_unit_id": str(scope.business_unit_id)}

        return Response(
            {
                "user": {
                    "id": request.user.id,
                    "username": getattr(request.user, "username", None),
                    "email": getattr(request.user, "email", None),
                    "is_superuser": bool(getattr(request.user, "is_superuser", False)),
                },
                "memberships": membership.list_user_business_units(request.user.id),
                "active_scope": active_scope,
            },
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=ScopeSwitchRequestSerializer, responses={200: ScopeSwitchResponseSerializer}, tags=["IAM"])
    def post(self, request):
        """
        Switch active business unit.
        The server cannot set headers for the client; the client should send the returned
        X-Business-Unit-Id on subsequent requests.
        """
        ser = ScopeSwitchRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        business_unit_id = ser.validated_data["business_unit_id"]

        if not membership.is_user_member_of_business_unit(user_id=request.user.id, business_unit_id=business_unit_id):
            raise PermissionDenied(NOT_A_MEMBER_MSG)

        return Response(
            {
                "message": "Scope switched successfully",
                "active_scope": {"business_unit_id": str(business_unit_id)},
            },
            status=status.HTTP_200_OK,
        )
