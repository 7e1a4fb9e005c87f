# sped_core/rules/resolver.py
"""
Effective rule pack resolution.

Fallback chain, most specific first:
  SCHOOL(scope_id) -> DISTRICT(district of the school) -> STATE(state of the district)

When the organization directory knows the school/district, its real district code
and state code are used. Otherwise the district is the scope_id itself and the
state is scope_id[:2].upper().

"No pack" is a normal result (Resolution.rule_pack is None), never an error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from sped_core.common.models import PlanType
from sped_core.organizations.selectors import get_district_by_code, get_school_by_code
from sped_core.rules.configs import RuleConfig, RuleConfigError, merge_config
from sped_core.rules.models import RulePack, RulePackEvidenceRequirement, RuleScopeType
from sped_core.rules.selectors import list_evidence_requirements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeCandidate:
    scope_type: str
    scope_id: str


@dataclass(frozen=True)
class Resolution:
    rule_pack: Optional[RulePack]
    resolved_scope: Optional[ScopeCandidate]
    searched: tuple[ScopeCandidate, ...] = ()

    @property
    def found(self) -> bool:
        return self.rule_pack is not None


@dataclass(frozen=True)
class EffectiveRule:
    key: str
    name: str
    sort_order: int
    config: RuleConfig
    evidence: tuple[RulePackEvidenceRequirement, ...] = field(default_factory=tuple)


def state_code_from(scope_id: str) -> str:
    return (scope_id or "")[:2].upper()


def build_scope_chain(scope_type: str, scope_id: str) -> list[ScopeCandidate]:
    if scope_type not in RuleScopeType.values:
        raise ValidationError({"scope_type": f"Must be one of {RuleScopeType.values}."})
    if not scope_id:
        raise ValidationError({"scope_id": "This field is required."})

    chain: list[ScopeCandidate] = []
    district_code: Optional[str] = None
    state_code: Optional[str] = None

    if scope_type == RuleScopeType.SCHOOL:
        chain.append(ScopeCandidate(RuleScopeType.SCHOOL, scope_id))
        school = get_school_by_code(scope_id)
        if school is not None:
            district_code = school.district.code
            state_code = school.district.state_code
        else:
            district_code = scope_id

    if scope_type == RuleScopeType.DISTRICT:
        district_code = scope_id
        district = get_district_by_code(scope_id)
        if district is not None:
            state_code = district.state_code

    if district_code:
        chain.append(ScopeCandidate(RuleScopeType.DISTRICT, district_code))

    chain.append(ScopeCandidate(RuleScopeType.STATE, state_code or state_code_from(scope_id)))

    # Directory data may collapse two levels onto the same id; keep first occurrence.
    unique: list[ScopeCandidate] = []
    for candidate in chain:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def _candidate_pack(candidate: ScopeCandidate, plan_type: str, as_of: datetime) -> Optional[RulePack]:
    return (
        RulePack.objects.filter(
            scope_type=candidate.scope_type,
            scope_id=candidate.scope_id,
            plan_type__in=[plan_type, PlanType.ALL],
            is_active=True,
            effective_from__lte=as_of,
        )
        .filter(Q(effective_to__isnull=True) | Q(effective_to__gte=as_of))
        .annotate(
            exact_plan=Case(
                When(plan_type=plan_type, then=Value(1)),
                default=Value(0),
                output_field=IntegerField(),
            )
        )
        # Highest version wins; an exact plan-type match breaks a version tie with ALL.
        .order_by("-version", "-exact_plan", "-created_at")
        .first()
    )


def resolve_active_pack(
    *,
    scope_type: str,
    scope_id: str,
    plan_type: str,
    as_of: Optional[datetime] = None,
) -> Resolution:
    if plan_type not in PlanType.values:
        raise ValidationError({"plan_type": f"Must be one of {PlanType.values}."})

    as_of = as_of or timezone.now()
    chain = build_scope_chain(scope_type, scope_id)

    for candidate in chain:
        pack = _candidate_pack(candidate, plan_type, as_of)
        if pack is not None:
            logger.debug("Resolved %s:%s:%s to rule pack %s", scope_type, scope_id, plan_type, pack.id)
            return Resolution(rule_pack=pack, resolved_scope=candidate, searched=tuple(chain))
        logger.debug("No effective rule pack at %s:%s", candidate.scope_type, candidate.scope_id)

    return Resolution(rule_pack=None, resolved_scope=None, searched=tuple(chain))


def resolve_for_plan(*, plan, as_of: Optional[datetime] = None) -> Resolution:
    """
    Resolve through the plan's student's school. Students without a school
    resolve to nothing.
    """
    school = getattr(plan.student, "school", None)
    if school is None:
        return Resolution(rule_pack=None, resolved_scope=None, searched=())
    return resolve_active_pack(
        scope_type=RuleScopeType.SCHOOL,
        scope_id=school.code,
        plan_type=plan.plan_type,
        as_of=as_of,
    )


def effective_rules(pack: RulePack) -> list[EffectiveRule]:
    """
    Enabled rules in sort order, each with its merged (default + override) typed config
    and its evidence requirements.

    A rule whose stored config no longer parses is logged and left out.
    """
    evidence_by_rule: dict = {}
    for requirement in list_evidence_requirements(pack=pack):
        evidence_by_rule.setdefault(requirement.rule_id, []).append(requirement)

    result = []
    for rule in pack.rules.filter(is_enabled=True).select_related("rule_definition").order_by("sort_order", "created_at"):
        definition = rule.rule_definition
        try:
            config = merge_config(definition.key, definition.default_config, rule.config)
        except RuleConfigError as e:
            logger.warning("Skipping rule %s in rule pack %s: %s", definition.key, pack.id, e.errors)
            continue
        result.append(
            EffectiveRule(
                key=definition.key,
                name=definition.name,
                sort_order=rule.sort_order,
                config=config,
                evidence=tuple(evidence_by_rule.get(rule.id, ())),
            )
        )
    return result
