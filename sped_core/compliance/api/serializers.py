# sped_core/compliance/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from sped_core.compliance.models import ComplianceTask, ComplianceTaskStatus, ComplianceTaskType
from sped_core.plans.api.serializers import StudentSummarySerializer


class ComplianceTaskSerializer(serializers.ModelSerializer):
    student = StudentSummarySerializer(read_only=True)
    task_type_display = serializers.CharField(source="get_task_type_display", read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = ComplianceTask
        fields = [
            "id",
            "task_type",
            "task_type_display",
            "status",
            "title",
            "description",
            "due_date",
            "priority",
            "is_overdue",
            "review_schedule_id",
            "plan_id",
            "student",
            "assigned_to_user_id",
            "created_by_user_id",
            "completed_at",
            "completed_by_user_id",
            "dismissed_at",
            "dismissed_by_user_id",
            "dismiss_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ComplianceTaskCreateSerializer(serializers.Serializer):
    task_type = serializers.ChoiceField(choices=ComplianceTaskType.choices)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    priority = serializers.IntegerField(required=False, min_value=1, max_value=5)
    plan_id = serializers.UUIDField(required=False, allow_null=True)
    student_id = serializers.UUIDField(required=False, allow_null=True)
    review_schedule_id = serializers.UUIDField(required=False, allow_null=True)
    assigned_to_user_id = serializers.IntegerField(required=False, allow_null=True)


class ComplianceTaskUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    priority = serializers.IntegerField(required=False, min_value=1, max_value=5)
    assigned_to_user_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if "status" in self.initial_data:
            raise serializers.ValidationError(
                {"status": "Use the start, complete or dismiss actions to change status."}
            )
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


class ComplianceTaskCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)


class ComplianceTaskDismissSerializer(serializers.Serializer):
    reason = serializers.CharField()


class ComplianceTaskListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ComplianceTaskStatus.choices, required=False)
    task_type = serializers.ChoiceField(choices=ComplianceTaskType.choices, required=False)
    assigned_to = serializers.IntegerField(required=False)
    student = serializers.UUIDField(required=False)
    plan = serializers.UUIDField(required=False)
    overdue = serializers.BooleanField(required=False)


class ComplianceDashboardSerializer(serializers.Serializer):
    open_count = serializers.IntegerField()
    in_progress_count = serializers.IntegerField()
    overdue_count = serializers.IntegerField()
    due_soon_count = serializers.IntegerField()
    urgent = ComplianceTaskSerializer(many=True)
