from __future__ import annotations

import django_filters

from sped_core.common.models import PlanType
from sped_core.rules.models import RulePack, RuleScopeType


class RulePackFilter(django_filters.FilterSet):
    scope_type = django_filters.ChoiceFilter(choices=RuleScopeType.choices)
    scope_id = django_filters.CharFilter()
    plan_type = django_filters.ChoiceFilter(choices=PlanType.choices)
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = RulePack
        fields = ["scope_type", "scope_id", "plan_type", "is_active"]
