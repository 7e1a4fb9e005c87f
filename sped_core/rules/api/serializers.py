# sped_core/rules/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from sped_core.common.models import PlanType
from sped_core.rules.configs import config_to_dict
from sped_core.rules.models import (
    EvidenceType,
    RuleDefinition,
    RulePack,
    RulePackEvidenceRequirement,
    RulePackRule,
    RuleScopeType,
)


class RuleDefinitionSerializer(serializers.ModelSerializer):
    class Meta:
        model = RuleDefinition
        fields = ["id", "key", "name", "description", "default_config"]
        read_only_fields = fields


class EvidenceTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = EvidenceType
        fields = ["id", "key", "name", "plan_type"]
        read_only_fields = fields


class EvidenceRequirementSerializer(serializers.ModelSerializer):
    evidence_type = EvidenceTypeSerializer(read_only=True)

    class Meta:
        model = RulePackEvidenceRequirement
        fields = ["id", "evidence_type", "is_required", "created_at"]
        read_only_fields = fields


class RulePackRuleSerializer(serializers.ModelSerializer):
    rule_definition = RuleDefinitionSerializer(read_only=True)
    evidence_requirements = EvidenceRequirementSerializer(many=True, read_only=True)

    class Meta:
        model = RulePackRule
        fields = [
            "id",
            "rule_definition",
            "is_enabled",
            "config",
            "sort_order",
            "evidence_requirements",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RulePackSerializer(serializers.ModelSerializer):
    rules = RulePackRuleSerializer(many=True, read_only=True)

    class Meta:
        model = RulePack
        fields = [
            "id",
            "scope_type",
            "scope_id",
            "plan_type",
            "version",
            "name",
            "is_active",
            "effective_from",
            "effective_to",
            "rules",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RulePackCreateSerializer(serializers.Serializer):
    scope_type = serializers.ChoiceField(choices=RuleScopeType.choices)
    scope_id = serializers.CharField(max_length=64)
    plan_type = serializers.ChoiceField(choices=PlanType.choices)
    name = serializers.CharField(max_length=255)
    effective_from = serializers.DateTimeField()
    effective_to = serializers.DateTimeField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False, default=True)

    def validate(self, attrs):
        effective_to = attrs.get("effective_to")
        if effective_to is not None and effective_to < attrs["effective_from"]:
            raise serializers.ValidationError({"effective_to": "Must be on or after effective_from."})
        return attrs


class RulePackUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    is_active = serializers.BooleanField(required=False)
    effective_from = serializers.DateTimeField(required=False)
    effective_to = serializers.DateTimeField(required=False, allow_null=True)


class ActivePackQuerySerializer(serializers.Serializer):
    scope_type = serializers.ChoiceField(choices=RuleScopeType.choices)
    scope_id = serializers.CharField(max_length=64)
    plan_type = serializers.ChoiceField(choices=PlanType.choices)
    as_of = serializers.DateTimeField(required=False)


class RuleAttachSerializer(serializers.Serializer):
    rule_definition_id = serializers.UUIDField()
    is_enabled = serializers.BooleanField(required=False, default=True)
    config = serializers.JSONField(required=False, allow_null=True)
    sort_order = serializers.IntegerField(required=False, default=0)


class RuleUpdateSerializer(serializers.Serializer):
    is_enabled = serializers.BooleanField(required=False)
    config = serializers.JSONField(required=False, allow_null=True)
    sort_order = serializers.IntegerField(required=False)


class RuleReplaceItemSerializer(serializers.Serializer):
    rule_definition_id = serializers.UUIDField()
    is_enabled = serializers.BooleanField()
    config = serializers.JSONField(required=False, allow_null=True)
    sort_order = serializers.IntegerField(required=False, default=0)


class RuleReplaceSerializer(serializers.Serializer):
    rules = RuleReplaceItemSerializer(many=True)


class EvidenceAttachSerializer(serializers.Serializer):
    evidence_type_id = serializers.UUIDField()
    is_required = serializers.BooleanField(required=False, default=True)


class EvidenceReplaceItemSerializer(serializers.Serializer):
    evidence_type_id = serializers.UUIDField()
    is_required = serializers.BooleanField()


class EvidenceReplaceSerializer(serializers.Serializer):
    evidence_requirements = EvidenceReplaceItemSerializer(many=True)


class RuleContextQuerySerializer(serializers.Serializer):
    as_of = serializers.DateTimeField(required=False)
    meeting_date = serializers.DateField(required=False)


def scope_payload(candidate) -> dict | None:
    if candidate is None:
        return None
    return {"scope_type": str(candidate.scope_type), "scope_id": candidate.scope_id}


def resolution_payload(resolution) -> dict:
    return {
        "rule_pack": RulePackSerializer(resolution.rule_pack).data if resolution.rule_pack else None,
        "resolved_scope": scope_payload(resolution.resolved_scope),
        "searched": [scope_payload(c) for c in resolution.searched],
    }


def effective_rule_payload(rule) -> dict:
    return {
        "key": rule.key,
        "name": rule.name,
        "sort_order": rule.sort_order,
        "config": config_to_dict(rule.config),
        "evidence": [
            {
                "id": str(req.id),
                "evidence_type_key": req.evidence_type.key,
                "evidence_type_name": req.evidence_type.name,
                "is_required": req.is_required,
            }
            for req in rule.evidence
        ],
    }
