# clinic_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.iam.models import BusinessUnitMembership


@admin.register(BusinessUnitMembership)
class BusinessUnitMembershipAdmin(admin.ModelAdmin):
    list_display = ("business_unit", "user", "role_code", "is_primary", "is_active")
    list_filter = ("business_unit", "role_code", "is_active")
    search_fields = ("business_unit__name", "business_unit__code", "user__username", "user__email")
    autocomplete_fields = ("business_unit", "user")
