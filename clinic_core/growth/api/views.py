# clinic_core/growth/api/views.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from clinic_core.common.api.exceptions import validation_payload
from clinic_core.common.api.pagination import paginate, wants_page
from clinic_core.common.permissions import SomatometryConfigPermission, SomatometryPermission
from clinic_core.common.scope import require_scope
from clinic_core.growth.api.serializers import (
    AnalyzeSerializer,
    GrowthAnalysisSerializer,
    PatientQuerySerializer,
    PresetSerializer,
    SliderRangesQuerySerializer,
    SomatometryConfigSerializer,
    SomatometryConfigUpdateSerializer,
    SomatometryRecordCreateSerializer,
    SomatometryRecordSerializer,
    SomatometryRecordUpdateSerializer,
    WHOChartQuerySerializer,
)
from clinic_core.growth.models import SomatometryConfig, SomatometryRecord
from clinic_core.growth.selectors import ReferenceSelector, SomatometrySelector
from clinic_core.growth.services import SomatometryConfigService, SomatometryService
from clinic_core.patients.selectors import PatientNotFound, get_patient


def _require_patient(business_unit_id, patient_id):
    try:
        return get_patient(business_unit_id=business_unit_id, patient_id=patient_id)
    except (PatientNotFound, DjangoValidationError):
        raise NotFound("Patient not found in this business unit.")


class SomatometryRecordViewSet(viewsets.ViewSet):
    permission_classes = [SomatometryPermission]

    serializer_class = SomatometryRecordSerializer
    queryset = SomatometryRecord.objects.none()

    def _get_object(self, request, pk) -> SomatometryRecord:
        scope = require_scope(request)
        try:
            return SomatometrySelector.get_record(business_unit_id=scope.business_unit_id, record_id=pk)
        except SomatometrySelector.NotFound:
            raise NotFound("Measurement not found in this business unit.")

    def list(self, request):
        scope = require_scope(request)

        try:
            qs = SomatometrySelector.list_records(business_unit_id=scope.business_unit_id, params=request.query_params)
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        if wants_page(request):
            return paginate(request, qs, SomatometryRecordSerializer)
        return Response(SomatometryRecordSerializer(qs[: settings.CLINIC_LIST_LIMIT], many=True).data)

    def retrieve(self, request, pk=None):
        record = self._get_object(request, pk)
        return Response(SomatometryRecordSerializer(record).data)

    @extend_schema(request=SomatometryRecordCreateSerializer, responses={201: SomatometryRecordSerializer})
    def create(self, request):
        scope = require_scope(request)

        ser = SomatometryRecordCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            record = SomatometryService.create(
                business_unit_id=scope.business_unit_id,
                actor_user_id=request.user.id,
                **ser.validated_data,
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        return Response(SomatometryRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=SomatometryRecordUpdateSerializer, responses={200: SomatometryRecordSerializer})
    def partial_update(self, request, pk=None):
        record = self._get_object(request, pk)

        ser = SomatometryRecordUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        try:
            record = SomatometryService.update(
                business_unit_id=record.business_unit_id,
                actor_user_id=request.user.id,
                record_id=record.id,
                data=ser.validated_data,
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        return Response(SomatometryRecordSerializer(record).data)

    def destroy(self, request, pk=None):
        record = self._get_object(request, pk)
        SomatometryService.delete(
            business_unit_id=record.business_unit_id,
            actor_user_id=request.user.id,
            record_id=record.id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(responses={200: GrowthAnalysisSerializer})
    @action(detail=True, methods=["get"])
    def analysis(self, request, pk=None):
        record = self._get_object(request, pk)
        return Response(SomatometryService.analyze_record(record=record).as_dict())


class SomatometryViewSet(viewsets.ViewSet):
    """
    Growth tools that are not tied to one stored measurement.
    """
    permission_classes = [SomatometryPermission]

    @extend_schema(parameters=[PatientQuerySerializer])
    @action(detail=False, methods=["get"])
    def statistics(self, request):
        scope = require_scope(request)

        q = PatientQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        patient = _require_patient(scope.business_unit_id, q.validated_data["patient"])

        return Response(
            SomatometrySelector.growth_statistics(business_unit_id=scope.business_unit_id, patient_id=patient.id)
        )

    @extend_schema(parameters=[WHOChartQuerySerializer])
    @action(detail=False, methods=["get"], url_path="who-chart")
    def who_chart(self, request):
        require_scope(request)

        q = WHOChartQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        try:
            data = ReferenceSelector.who_chart(**q.validated_data)
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))
        return Response(data)

    @extend_schema(parameters=[SliderRangesQuerySerializer])
    @action(detail=False, methods=["get"], url_path="slider-ranges")
    def slider_ranges(self, request):
        scope = require_scope(request)

        q = SliderRangesQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        patient = _require_patient(scope.business_unit_id, q.validated_data["patient"])

        try:
            data = SomatometryService.slider_ranges(
                business_unit_id=scope.business_unit_id,
                patient_id=patient.id,
                measurement_date=q.validated_data.get("measurement_date") or timezone.localdate(),
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))
        return Response(data)

    @extend_schema(request=AnalyzeSerializer, responses={200: GrowthAnalysisSerializer})
    @action(detail=False, methods=["post"])
    def analyze(self, request):
        scope = require_scope(request)

        ser = AnalyzeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            result = SomatometryService.preview(business_unit_id=scope.business_unit_id, **ser.validated_data)
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))
        return Response(result.as_dict())


class SomatometryConfigView(APIView):
    permission_classes = [SomatometryConfigPermission]
    queryset = SomatometryConfig.objects.none()

    @extend_schema(responses={200: SomatometryConfigSerializer})
    def get(self, request):
        scope = require_scope(request)
        config = SomatometryConfigService.get_or_create(business_unit_id=scope.business_unit_id)
        return Response(SomatometryConfigSerializer(config).data)

    @extend_schema(request=SomatometryConfigUpdateSerializer, responses={200: SomatometryConfigSerializer})
    def patch(self, request):
        scope = require_scope(request)

        ser = SomatometryConfigUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        try:
            config = SomatometryConfigService.update(
                business_unit_id=scope.business_unit_id,
                actor_user_id=request.user.id,
                data=ser.validated_data,
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))
        return Response(SomatometryConfigSerializer(config).data)


class SomatometryConfigPresetView(APIView):
    permission_classes = [SomatometryConfigPermission]

    @extend_schema(request=PresetSerializer, responses={200: SomatometryConfigSerializer})
    def post(self, request):
        scope = require_scope(request)

        ser = PresetSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            config = SomatometryConfigService.apply_preset(
                business_unit_id=scope.business_unit_id,
                actor_user_id=request.user.id,
                preset=ser.validated_data["preset"],
            )
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))
        return Response(SomatometryConfigSerializer(config).data)
