from __future__ import annotations

from django.contrib import admin

from sped_core.reviews.models import ReviewSchedule


@admin.register(ReviewSchedule)
class ReviewScheduleAdmin(admin.ModelAdmin):
    list_display = ("id", "plan", "schedule_type", "due_date", "lead_days", "status", "assigned_to_user_id")
    list_filter = ("schedule_type", "status")
    search_fields = ("id", "plan__student__first_name", "plan__student__last_name")
    ordering = ("due_date",)
    date_hierarchy = "due_date"
    list_select_related = ("plan", "plan__student")
    readonly_fields = ("completed_at", "completed_by_user_id", "created_by_user_id", "created_at", "updated_at")
