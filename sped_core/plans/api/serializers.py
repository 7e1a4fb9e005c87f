# sped_core/plans/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from sped_core.plans.models import PlanInstance, Student


class StudentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = ["id", "first_name", "last_name"]
        read_only_fields = fields


class PlanSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = PlanInstance
        fields = ["id", "plan_type", "status"]
        read_only_fields = fields
