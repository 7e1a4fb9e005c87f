from __future__ import annotations

from django.contrib import admin

from sped_core.organizations.models import District, School


@admin.register(District)
class DistrictAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "state_code", "created_at")
    list_filter = ("state_code",)
    search_fields = ("code", "name")
    ordering = ("code",)


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "district", "created_at")
    list_filter = ("district",)
    search_fields = ("code", "name", "district__code")
    ordering = ("code",)
    list_select_related = ("district",)
