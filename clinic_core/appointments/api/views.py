# clinic_core/appointments/api/views.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic_core.appointments.api.serializers import (
    ActionStateSerializer,
    AddNoteSerializer,
    AppointmentCreateSerializer,
    AppointmentHistorySerializer,
    AppointmentSerializer,
    AppointmentUpdateSerializer,
    AvailabilityQuerySerializer,
    CancelSerializer,
    ChangeStatusSerializer,
    RescheduleSerializer,
    StatusInfoSerializer,
)
from clinic_core.appointments.models import Appointment
from clinic_core.appointments.rules import available_actions, is_past
from clinic_core.appointments.selectors import AppointmentSelector
from clinic_core.appointments.services import AppointmentConflict, AppointmentService
from clinic_core.appointments.statuses import APPOINTMENT_STATUSES, get_status, is_terminal_status
from clinic_core.common.api.exceptions import ConflictError, validation_payload
from clinic_core.common.api.pagination import paginate, wants_page
from clinic_core.common.permissions import FRONT_DESK_ROLES, AppointmentPermission, has_any_role
from clinic_core.common.scope import require_scope


def _translate(exc: DjangoValidationError):
    if isinstance(exc, AppointmentConflict):
        return ConflictError(detail=validation_payload(exc))
    return DRFValidationError(validation_payload(exc))


class AppointmentStatusListView(APIView):
    """
    Static status catalogue (id, name, color, icon, terminal flag).
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: StatusInfoSerializer(many=True)}, tags=["Appointments"])
    def get(self, request):
        data = [s.as_dict() for s in APPOINTMENT_STATUSES.values()]
        return Response(data, status=status.HTTP_200_OK)


class AppointmentViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - scope parsing
    - validation mapping (400 for bad input, 409 for blocked workflow moves)
    - selectors for reads, services for writes
    """

    permission_classes = [AppointmentPermission]
    serializer_class = AppointmentSerializer
    queryset = Appointment.objects.none()

    def _get_object(self, request, pk) -> Appointment:
        scope = require_scope(request)
        try:
            return AppointmentSelector.get_appointment(business_unit_id=scope.business_unit_id, appointment_id=pk)
        except AppointmentSelector.NotFound:
            raise NotFound("Appointment not found in this business unit.")

    def _respond(self, appointment: Appointment, http_status=status.HTTP_200_OK) -> Response:
        appointment.refresh_from_db()
        return Response(AppointmentSerializer(appointment).data, status=http_status)

    # ----------------------------
    # Reads
    # ----------------------------
    def list(self, request):
        scope = require_scope(request)

        try:
            qs = AppointmentSelector.list_appointments(
                business_unit_id=scope.business_unit_id,
                params=request.query_params,
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        if wants_page(request):
            return paginate(request, qs, AppointmentSerializer)
        return Response(AppointmentSerializer(qs[: settings.CLINIC_LIST_LIMIT], many=True).data)

    def retrieve(self, request, pk=None):
        appointment = self._get_object(request, pk)
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        scope = require_scope(request)
        return Response(AppointmentSelector.stats(business_unit_id=scope.business_unit_id))

    @extend_schema(parameters=[AvailabilityQuerySerializer])
    @action(detail=False, methods=["get"])
    def availability(self, request):
        scope = require_scope(request)

        ser = AvailabilityQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data

        try:
            result = AppointmentService.check_slot_availability(
                business_unit_id=scope.business_unit_id,
                scheduled_date=v["date"],
                start_time=v["start_time"],
                duration_minutes=v["duration_minutes"],
                consulting_room=v.get("consulting_room"),
                exclude_id=v.get("exclude_id"),
            )
        except DjangoValidationError as e:
            raise _translate(e)
        return Response(result)

    @extend_schema(responses={200: ActionStateSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="actions")
    def action_menu(self, request, pk=None):
        appointment = self._get_object(request, pk)

        allowed = has_any_role(request.user, FRONT_DESK_ROLES, appointment.business_unit_id)
        past = is_past(appointment)
        states = available_actions(
            status_id=appointment.status,
            is_past=past,
            can_edit=allowed,
            can_cancel=allowed,
            can_change_status=allowed,
        )
        return Response(
            {
                "appointment_id": str(appointment.id),
                "status": get_status(appointment.status).as_dict(),
                "is_past": past,
                "is_terminal": is_terminal_status(appointment.status),
                "actions": [s.as_dict() for s in states],
            }
        )

    @extend_schema(responses={200: StatusInfoSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="allowed-transitions")
    def allowed_transitions(self, request, pk=None):
        appointment = self._get_object(request, pk)
        return Response(AppointmentSelector.allowed_transitions(appointment.status))

    @extend_schema(responses={200: AppointmentHistorySerializer(many=True)})
    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        appointment = self._get_object(request, pk)
        qs = AppointmentSelector.history(appointment=appointment)
        return Response(AppointmentHistorySerializer(qs, many=True).data)

    # ----------------------------
    # Writes
    # ----------------------------
    @extend_schema(request=AppointmentCreateSerializer, responses={201: AppointmentSerializer})
    def create(self, request):
        scope = require_scope(request)

        ser = AppointmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.create(
                business_unit_id=scope.business_unit_id,
                actor_user_id=request.user.id,
                **ser.validated_data,
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment, status.HTTP_201_CREATED)

    @extend_schema(request=AppointmentUpdateSerializer, responses={200: AppointmentSerializer})
    def partial_update(self, request, pk=None):
        appointment = self._get_object(request, pk)

        ser = AppointmentUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.update(
                business_unit_id=appointment.business_unit_id,
                actor_user_id=request.user.id,
                appointment_id=appointment.id,
                data=ser.validated_data,
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment)

    @extend_schema(request=ChangeStatusSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"], url_path="change-status")
    def change_status(self, request, pk=None):
        appointment = self._get_object(request, pk)

        ser = ChangeStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.change_status(
                business_unit_id=appointment.business_unit_id,
                actor_user_id=request.user.id,
                appointment_id=appointment.id,
                to_status=ser.validated_data["to_status"],
                notes=ser.validated_data["notes"],
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment)

    @extend_schema(request=CancelSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        appointment = self._get_object(request, pk)

        ser = CancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.cancel(
                business_unit_id=appointment.business_unit_id,
                actor_user_id=request.user.id,
                appointment_id=appointment.id,
                cancelled_by=ser.validated_data["cancelled_by"],
                notes=ser.validated_data["notes"],
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment)

    @extend_schema(request=RescheduleSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def reschedule(self, request, pk=None):
        appointment = self._get_object(request, pk)

        ser = RescheduleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.reschedule(
                business_unit_id=appointment.business_unit_id,
                actor_user_id=request.user.id,
                appointment_id=appointment.id,
                **ser.validated_data,
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment)

    @extend_schema(request=AddNoteSerializer, responses={200: AppointmentSerializer})
    @action(detail=True, methods=["post"])
    def notes(self, request, pk=None):
        appointment = self._get_object(request, pk)

        ser = AddNoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            appointment = AppointmentService.add_note(
                business_unit_id=appointment.business_unit_id,
                actor_user_id=request.user.id,
                appointment_id=appointment.id,
                note=ser.validated_data["note"],
                author_label=request.user.get_username(),
            )
        except DjangoValidationError as e:
            raise _translate(e)

        return self._respond(appointment)
