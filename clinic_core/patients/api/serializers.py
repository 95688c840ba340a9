# clinic_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.patients.models import Patient, Sex


class PatientCreateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=128)
    paternal_surname = serializers.CharField(max_length=128)
    maternal_surname = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    sex = serializers.ChoiceField(choices=Sex.choices)
    mrn = serializers.CharField(max_length=64)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    date_of_birth = serializers.DateField(required=False, allow_null=True)


class PatientUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH).
    """
    first_name = serializers.CharField(max_length=128, required=False)
    paternal_surname = serializers.CharField(max_length=128, required=False)
    maternal_surname = serializers.CharField(max_length=128, required=False, allow_blank=True)
    sex = serializers.ChoiceField(choices=Sex.choices, required=False)
    mrn = serializers.CharField(max_length=64, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class PatientSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Patient
        fields = [
            "id",
            "business_unit_id",
            "first_name",
            "paternal_surname",
            "maternal_surname",
            "full_name",
            "sex",
            "date_of_birth",
            "mrn",
            "phone",
            "email",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
