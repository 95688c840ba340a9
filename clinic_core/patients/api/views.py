# clinic_core/patients/api/views.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status, viewsets
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.response import Response

from clinic_core.common.api.exceptions import validation_payload
from clinic_core.common.api.pagination import paginate, wants_page
from clinic_core.common.permissions import PatientPermission
from clinic_core.common.scope import require_scope
from clinic_core.patients.api.serializers import (
    PatientCreateSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
)
from clinic_core.patients.models import Patient
from clinic_core.patients.selectors import PatientNotFound, get_patient, search_patients
from clinic_core.patients.services import PatientService


class PatientViewSet(viewsets.ViewSet):
    permission_classes = [PatientPermission]

    # lets drf-spectacular type the path param
    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    def _get_object(self, request, pk) -> Patient:
        scope = require_scope(request)
        try:
            return get_patient(business_unit_id=scope.business_unit_id, patient_id=pk)
        except (PatientNotFound, DjangoValidationError):
            raise NotFound("Patient not found in this business unit.")

    def list(self, request):
        scope = require_scope(request)

        q = request.query_params.get("q", "").strip()
        qs = search_patients(business_unit_id=scope.business_unit_id, q=q)

        if wants_page(request):
            return paginate(request, qs, PatientSerializer)
        return Response(PatientSerializer(qs[: settings.CLINIC_LIST_LIMIT], many=True).data, status=status.HTTP_200_OK)

    def create(self, request):
        scope = require_scope(request)

        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            patient = PatientService.create_patient(
                business_unit_id=scope.business_unit_id,
                actor_user_id=request.user.id,
                **ser.validated_data,
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        return Response(PatientSerializer(patient).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        patient = self._get_object(request, pk)
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    def partial_update(self, request, pk=None):
        patient = self._get_object(request, pk)

        ser = PatientUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            patient = PatientService.update_patient(
                business_unit_id=patient.business_unit_id,
                actor_user_id=request.user.id,
                patient_id=patient.id,
                data=ser.validated_data,
            )
        except ValueError as e:
            raise DRFValidationError({"detail": str(e)})
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)
