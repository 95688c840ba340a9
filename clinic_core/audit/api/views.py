# clinic_core/audit/api/views.py
from __future__ import annotations

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from clinic_core.audit.api.serializers import AuditEventSerializer
from clinic_core.audit.models import AuditEvent
from clinic_core.audit.selectors import list_audit_events
from clinic_core.common.permissions import AuditPermission
from clinic_core.common.scope import require_scope
from clinic_core.iam.scope import parse_uuid


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    List audit events for the active business unit.
    """
    permission_classes = [AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter("entity_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="Filter by entity type (e.g. Appointment, SomatometryRecord)."),
            OpenApiParameter("entity_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False,
                             description="Filter by entity UUID."),
            OpenApiParameter("event_code", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False,
                             description="Filter by event code (e.g. appointment.status_changed)."),
            OpenApiParameter("actor_user_id", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False,
                             description="Filter by actor user id."),
            OpenApiParameter("limit", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False,
                             description="Max records to return (default 200, max 500)."),
        ],
    )
    def list(self, request):
        scope = require_scope(request)
        params = request.query_params

        entity_id = None
        if params.get("entity_id"):
            entity_id = parse_uuid(params["entity_id"])
            if entity_id is None:
                raise DRFValidationError({"detail": "Invalid entity_id (UUID expected)"})

        actor_user_id = None
        if params.get("actor_user_id"):
            try:
                actor_user_id = int(params["actor_user_id"])
            except ValueError:
                raise DRFValidationError({"detail": "Invalid actor_user_id (int expected)"})

        qs = list_audit_events(
            business_unit_id=scope.business_unit_id,
            entity_type=params.get("entity_type") or None,
            entity_id=entity_id,
            event_code=params.get("event_code") or None,
            actor_user_id=actor_user_id,
        )

        try:
            limit_n = int(params.get("limit") or settings.CLINIC_LIST_LIMIT)
        except ValueError:
            limit_n = settings.CLINIC_LIST_LIMIT
        limit_n = max(1, min(limit_n, 500))

        return Response(AuditEventSerializer(qs[:limit_n], many=True).data, status=status.HTTP_200_OK)
