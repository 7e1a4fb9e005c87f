# sped_core/reviews/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from sped_core.plans.api.serializers import PlanSummarySerializer, StudentSummarySerializer
from sped_core.reviews.models import (
    MAX_LEAD_DAYS,
    MIN_LEAD_DAYS,
    ReviewSchedule,
    ReviewScheduleStatus,
    ScheduleType,
)


class ReviewScheduleSerializer(serializers.ModelSerializer):
    plan = PlanSummarySerializer(read_only=True)
    student = StudentSummarySerializer(source="plan.student", read_only=True)
    schedule_type_display = serializers.CharField(source="get_schedule_type_display", read_only=True)
    lead_date = serializers.DateTimeField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = ReviewSchedule
        fields = [
            "id",
            "plan",
            "student",
            "schedule_type",
            "schedule_type_display",
            "due_date",
            "lead_days",
            "lead_date",
            "status",
            "is_overdue",
            "assigned_to_user_id",
            "notes",
            "completed_at",
            "completed_by_user_id",
            "created_by_user_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReviewScheduleCreateSerializer(serializers.Serializer):
    schedule_type = serializers.ChoiceField(choices=ScheduleType.choices)
    due_date = serializers.DateTimeField()
    lead_days = serializers.IntegerField(required=False, min_value=MIN_LEAD_DAYS, max_value=MAX_LEAD_DAYS)
    assigned_to_user_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ReviewScheduleUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateTimeField(required=False)
    lead_days = serializers.IntegerField(required=False, min_value=MIN_LEAD_DAYS, max_value=MAX_LEAD_DAYS)
    assigned_to_user_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


class ReviewScheduleCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)


class ReviewScheduleListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ReviewScheduleStatus.choices, required=False)
    schedule_type = serializers.ChoiceField(choices=ScheduleType.choices, required=False)
    type = serializers.ChoiceField(choices=ScheduleType.choices, required=False, help_text="Alias of schedule_type.")


class ReviewDashboardQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, min_value=0, max_value=MAX_LEAD_DAYS)


class ReviewDashboardSerializer(serializers.Serializer):
    overdue = ReviewScheduleSerializer(many=True)
    upcoming = ReviewScheduleSerializer(many=True)
    overdue_count = serializers.IntegerField()
    upcoming_count = serializers.IntegerField()
    total = serializers.IntegerField()
    total_due_within_30_days = serializers.IntegerField()
