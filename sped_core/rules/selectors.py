from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from django.db.models import Prefetch, QuerySet
from rest_framework.exceptions import ValidationError

from sped_core.common.lookups import get_or_not_found
from sped_core.common.models import PlanType
from sped_core.rules.filters import RulePackFilter
from sped_core.rules.models import (
    EvidenceType,
    RuleDefinition,
    RulePack,
    RulePackEvidenceRequirement,
    RulePackRule,
)


def list_rule_definitions() -> QuerySet[RuleDefinition]:
    return RuleDefinition.objects.order_by("key")


def list_evidence_types(*, plan_type: Optional[str] = None) -> QuerySet[EvidenceType]:
    qs = EvidenceType.objects.all()
    if plan_type:
        qs = qs.filter(plan_type__in=[plan_type, PlanType.ALL])
    return qs.order_by("key")


def _rules_prefetch() -> Prefetch:
    return Prefetch(
        "rules",
        queryset=RulePackRule.objects.select_related("rule_definition")
        .prefetch_related(
            Prefetch(
                "evidence_requirements",
                queryset=RulePackEvidenceRequirement.objects.select_related("evidence_type").order_by(
                    "evidence_type__key"
                ),
            )
        )
        .order_by("sort_order", "created_at"),
    )


def rule_pack_qs() -> QuerySet[RulePack]:
    return RulePack.objects.prefetch_related(_rules_prefetch())


def list_rule_packs(*, params: Any = None) -> QuerySet[RulePack]:
    """
    Ordered by scope_type, scope_id, then newest version first.
    Query params go through RulePackFilter.
    """
    qs = rule_pack_qs().order_by("scope_type", "scope_id", "-version")
    if params is not None:
        filterset = RulePackFilter(params, queryset=qs)
        if not filterset.is_valid():
            errors = filterset.errors.get_json_data()
            raise ValidationError({name: [e["message"] for e in items] for name, items in errors.items()})
        qs = filterset.qs
    return qs


def get_rule_pack(*, pack_id: UUID) -> RulePack:
    return get_or_not_found(rule_pack_qs(), "Rule pack not found.", id=pack_id)


def get_pack_rule(*, pack: RulePack, rule_id: UUID) -> RulePackRule:
    return get_or_not_found(
        RulePackRule.objects.select_related("rule_definition", "rule_pack"),
        "Rule not found in this rule pack.",
        id=rule_id,
        rule_pack=pack,
    )


def list_evidence_requirements(*, pack: RulePack) -> QuerySet[RulePackEvidenceRequirement]:
    """
    Requirements of enabled rules only, in rule sort order.
    """
    return (
        RulePackEvidenceRequirement.objects.filter(rule__rule_pack=pack, rule__is_enabled=True)
        .select_related("rule__rule_definition", "evidence_type")
        .order_by("rule__sort_order", "rule__created_at", "evidence_type__key")
    )
