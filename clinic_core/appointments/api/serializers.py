# clinic_core/appointments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.appointments.models import (
    Appointment,
    AppointmentStatusHistory,
    ConsultationType,
    EvolutionUnit,
)
from clinic_core.appointments.services import CANCEL_STATUS, RESCHEDULE_STATUS
from clinic_core.appointments.statuses import get_status


class AppointmentCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    scheduled_date = serializers.DateField()
    start_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(required=False, min_value=1)
    consulting_room = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    doctor_id = serializers.IntegerField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    is_urgent = serializers.BooleanField(required=False, default=False)
    consultation_type = serializers.ChoiceField(choices=ConsultationType.choices, default=ConsultationType.FIRST)
    evolution_time = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    evolution_unit = serializers.ChoiceField(choices=EvolutionUnit.choices, required=False, allow_blank=True, default="")
    associated_symptoms = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    status = serializers.IntegerField(required=False)


class AppointmentUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH). Date/time moves go through /reschedule/.
    """
    duration_minutes = serializers.IntegerField(required=False, min_value=1)
    consulting_room = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    doctor_id = serializers.IntegerField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    is_urgent = serializers.BooleanField(required=False)
    consultation_type = serializers.ChoiceField(choices=ConsultationType.choices, required=False)
    evolution_time = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    evolution_unit = serializers.ChoiceField(choices=EvolutionUnit.choices, required=False, allow_blank=True)
    associated_symptoms = serializers.ListField(child=serializers.CharField(), required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class ChangeStatusSerializer(serializers.Serializer):
    to_status = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(serializers.Serializer):
    cancelled_by = serializers.ChoiceField(choices=sorted(CANCEL_STATUS))
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class RescheduleSerializer(serializers.Serializer):
    new_date = serializers.DateField()
    new_start_time = serializers.TimeField()
    requested_by = serializers.ChoiceField(choices=sorted(RESCHEDULE_STATUS))
    duration_minutes = serializers.IntegerField(required=False, min_value=1)
    consulting_room = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AddNoteSerializer(serializers.Serializer):
    note = serializers.CharField()


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    start_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(min_value=1)
    consulting_room = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    exclude_id = serializers.UUIDField(required=False, allow_null=True)


class StatusInfoSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    code = serializers.CharField()
    name = serializers.CharField()
    color = serializers.CharField()
    icon = serializers.CharField()
    is_terminal = serializers.BooleanField()


class ActionStateSerializer(serializers.Serializer):
    key = serializers.CharField()
    enabled = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)


class AppointmentSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    patient_name = serializers.CharField(source="patient.full_name", read_only=True)
    doctor_id = serializers.IntegerField(read_only=True, allow_null=True)
    status_info = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            "id",
            "business_unit_id",
            "patient_id",
            "patient_name",
            "doctor_id",
            "scheduled_date",
            "start_time",
            "end_time",
            "duration_minutes",
            "status",
            "status_info",
            "reason",
            "notes",
            "is_urgent",
            "consulting_room",
            "consultation_type",
            "evolution_time",
            "evolution_unit",
            "associated_symptoms",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_status_info(self, obj) -> dict:
        return get_status(obj.status).as_dict()


class AppointmentHistorySerializer(serializers.ModelSerializer):
    from_status_name = serializers.SerializerMethodField()
    to_status_name = serializers.SerializerMethodField()
    changed_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    changed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = AppointmentStatusHistory
        fields = [
            "id",
            "from_status",
            "from_status_name",
            "to_status",
            "to_status_name",
            "previous_date",
            "previous_time",
            "new_date",
            "new_time",
            "notes",
            "changed_by_id",
            "changed_by_name",
            "created_at",
        ]
        read_only_fields = fields

    def get_from_status_name(self, obj) -> str:
        return get_status(obj.from_status).name

    def get_to_status_name(self, obj) -> str:
        return get_status(obj.to_status).name

    def get_changed_by_name(self, obj) -> str | None:
        user = obj.changed_by
        if user is None:
            return None
        return user.get_full_name() or user.get_username()
