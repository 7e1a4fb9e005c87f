# sped_core/rules/models.py
from django.core.exceptions import ValidationError
from django.db import models

from sped_core.common.models import PlanType, UUIDModel
from sped_core.rules.configs import RuleConfigError, merge_config, validate_override


class RuleScopeType(models.TextChoices):
    STATE = "STATE", "State"
    DISTRICT = "DISTRICT", "District"
    SCHOOL = "SCHOOL", "School"


class RuleDefinition(UUIDModel):
    """
    Catalog entry: a reusable rule type. `key` selects the typed config shape
    (see sped_core.rules.configs).
    """
    key = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    default_config = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "rules_rule_definition"
        ordering = ["key"]

    def __str__(self) -> str:
        return self.key

    def clean(self):
        try:
            merge_config(self.key, self.default_config, None)
        except RuleConfigError as e:
            raise ValidationError({"default_config": [f"{name}: {msg}" for name, msg in e.errors.items()]})


class EvidenceType(UUIDModel):
    key = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    plan_type = models.CharField(
        max_length=16,
        choices=PlanType.choices,
        default=PlanType.ALL,
        db_index=True,
    )

    class Meta:
        db_table = "rules_evidence_type"
        ordering = ["key"]

    def __str__(self) -> str:
        return self.key


class RulePack(UUIDModel):
    """
    Versioned bundle of rules bound to (scope_type, scope_id, plan_type).

    New versions are new rows; name/is_active/effective window are patched in place.
    """
    scope_type = models.CharField(max_length=16, choices=RuleScopeType.choices, db_index=True)
    scope_id = models.CharField(max_length=64, db_index=True)
    plan_type = models.CharField(max_length=16, choices=PlanType.choices, db_index=True)
    version = models.PositiveIntegerField()

    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True, db_index=True)
    effective_from = models.DateTimeField()
    effective_to = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "rules_rule_pack"
        constraints = [
            models.UniqueConstraint(
                fields=["scope_type", "scope_id", "plan_type", "version"],
                name="uq_rule_pack_scope_plan_version",
            ),
        ]
        indexes = [
            models.Index(fields=["scope_type", "scope_id", "plan_type", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.scope_type}:{self.scope_id}:{self.plan_type} v{self.version}"


class RulePackVersionMark(models.Model):
    """
    Highest version ever issued for (scope_type, scope_id, plan_type).
    Survives pack deletion so versions are never handed out twice.
    """
    scope_type = models.CharField(max_length=16, choices=RuleScopeType.choices)
    scope_id = models.CharField(max_length=64)
    plan_type = models.CharField(max_length=16, choices=PlanType.choices)
    last_version = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "rules_rule_pack_version_mark"
        constraints = [
            models.UniqueConstraint(
                fields=["scope_type", "scope_id", "plan_type"],
                name="uq_rule_pack_version_mark_scope_plan",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.scope_type}:{self.scope_id}:{self.plan_type} <= v{self.last_version}"


class RulePackRule(UUIDModel):
    rule_pack = models.ForeignKey(RulePack, on_delete=models.PROTECT, related_name="rules")
    rule_definition = models.ForeignKey(RuleDefinition, on_delete=models.PROTECT, related_name="pack_rules")

    is_enabled = models.BooleanField(default=True)
    # Override, same shape as the definition's default; validated on write.
    config = models.JSONField(default=dict, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        db_table = "rules_rule_pack_rule"
        ordering = ["sort_order", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["rule_pack", "rule_definition"],
                name="uq_rule_pack_rule_definition",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.rule_pack_id}:{self.rule_definition_id}"

    def clean(self):
        if self.rule_definition_id is None:
            return
        definition = self.rule_definition
        try:
            self.config = validate_override(definition.key, definition.default_config, self.config)
        except RuleConfigError as e:
            raise ValidationError({"config": [f"{name}: {msg}" for name, msg in e.errors.items()]})


class RulePackEvidenceRequirement(UUIDModel):
    rule = models.ForeignKey(RulePackRule, on_delete=models.PROTECT, related_name="evidence_requirements")
    evidence_type = models.ForeignKey(EvidenceType, on_delete=models.PROTECT, related_name="requirements")
    is_required = models.BooleanField(default=True)

    class Meta:
        db_table = "rules_rule_pack_evidence_requirement"
        constraints = [
            models.UniqueConstraint(
                fields=["rule", "evidence_type"],
                name="uq_rule_evidence_type",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.rule_id}:{self.evidence_type_id}"
