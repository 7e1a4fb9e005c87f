from __future__ import annotations

from django.contrib import admin
from django.contrib.admin import widgets
from django.db import models

from sped_core.rules.models import (
    EvidenceType,
    RuleDefinition,
    RulePack,
    RulePackEvidenceRequirement,
    RulePackRule,
    RulePackVersionMark,
)

_JSON_WIDGET = {
    models.JSONField: {"widget": widgets.AdminTextareaWidget(attrs={"rows": 8, "cols": 80})},
}


@admin.register(RuleDefinition)
class RuleDefinitionAdmin(admin.ModelAdmin):
    list_display = ("key", "name", "updated_at")
    search_fields = ("key", "name", "description")
    readonly_fields = ("created_at", "updated_at")
    formfield_overrides = _JSON_WIDGET


@admin.register(EvidenceType)
class EvidenceTypeAdmin(admin.ModelAdmin):
    list_display = ("key", "name", "plan_type")
    list_filter = ("plan_type",)
    search_fields = ("key", "name")


class RulePackRuleInline(admin.TabularInline):
    model = RulePackRule
    extra = 0
    fields = ("rule_definition", "is_enabled", "config", "sort_order")
    formfield_overrides = _JSON_WIDGET


@admin.register(RulePack)
class RulePackAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "scope_type",
        "scope_id",
        "plan_type",
        "version",
        "is_active",
        "effective_from",
        "effective_to",
    )
    list_filter = ("scope_type", "plan_type", "is_active")
    search_fields = ("name", "scope_id")
    ordering = ("scope_type", "scope_id", "-version")
    # version is assigned by RulePackService
    readonly_fields = ("version", "created_at", "updated_at")
    inlines = [RulePackRuleInline]

    fieldsets = (
        ("Scope", {"fields": ("scope_type", "scope_id", "plan_type", "version")}),
        ("Pack", {"fields": ("name", "is_active")}),
        ("Effective window", {"fields": ("effective_from", "effective_to")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def has_add_permission(self, request):
        return False


@admin.register(RulePackEvidenceRequirement)
class RulePackEvidenceRequirementAdmin(admin.ModelAdmin):
    list_display = ("rule", "evidence_type", "is_required")
    list_filter = ("is_required", "evidence_type")
    list_select_related = ("rule", "evidence_type")


@admin.register(RulePackVersionMark)
class RulePackVersionMarkAdmin(admin.ModelAdmin):
    list_display = ("scope_type", "scope_id", "plan_type", "last_version")
    list_filter = ("scope_type", "plan_type")
    search_fields = ("scope_id",)
    readonly_fields = ("scope_type", "scope_id", "plan_type", "last_version")

    def has_add_permission(self, request):
        return False
