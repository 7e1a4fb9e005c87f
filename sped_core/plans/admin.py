from __future__ import annotations

from django.contrib import admin

from sped_core.plans.models import PlanInstance, Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("id", "last_name", "first_name", "school", "created_at")
    search_fields = ("id", "first_name", "last_name")
    list_filter = ("school",)
    ordering = ("last_name", "first_name")
    list_select_related = ("school",)


@admin.register(PlanInstance)
class PlanInstanceAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "plan_type", "status", "created_at")
    list_filter = ("plan_type", "status")
    search_fields = ("id", "student__first_name", "student__last_name")
    ordering = ("-created_at",)
    list_select_related = ("student",)
