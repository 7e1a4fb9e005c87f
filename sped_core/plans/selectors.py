from __future__ import annotations

from uuid import UUID

from rest_framework.exceptions import NotFound

from sped_core.plans.models import PlanInstance


def get_plan(*, plan_id: UUID) -> PlanInstance:
    try:
        return PlanInstance.objects.select_related("student", "student__school__district").get(id=plan_id)
    except (PlanInstance.DoesNotExist, ValueError):
        raise NotFound("Plan not found.")
