from __future__ import annotations

from django.contrib import admin

from sped_core.compliance.models import ComplianceTask


@admin.register(ComplianceTask)
class ComplianceTaskAdmin(admin.ModelAdmin):
    list_display = ("title", "task_type", "status", "priority", "due_date", "assigned_to_user_id")
    list_filter = ("task_type", "status", "priority")
    search_fields = ("title", "description", "student__first_name", "student__last_name")
    ordering = ("-priority", "due_date")
    list_select_related = ("student",)
    raw_id_fields = ("review_schedule", "plan", "student")
    readonly_fields = (
        "completed_at",
        "completed_by_user_id",
        "dismissed_at",
        "dismissed_by_user_id",
        "created_by_user_id",
        "created_at",
        "updated_at",
    )
