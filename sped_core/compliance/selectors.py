from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from django.db.models import F, QuerySet
from django.utils.timezone import now as tz_now
from rest_framework.exceptions import ValidationError

from sped_core.common.lookups import get_or_not_found
from sped_core.compliance.models import (
    ACTIVE_TASK_STATUSES,
    ComplianceTask,
    ComplianceTaskStatus,
)

DASHBOARD_WINDOW_DAYS = 30
DASHBOARD_URGENT_LIMIT = 10

_TRUE_VALUES = {"1", "true", "yes"}
_FALSE_VALUES = {"0", "false", "no"}


def _task_qs() -> QuerySet[ComplianceTask]:
    return ComplianceTask.objects.select_related("student", "plan", "review_schedule")


def _ordered(qs: QuerySet[ComplianceTask]) -> QuerySet[ComplianceTask]:
    # nulls last so undated tasks sink below dated ones of equal priority
    return qs.order_by("-priority", F("due_date").asc(nulls_last=True), "created_at")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValidationError({name: ["Must be true or false."]})


def get_task(*, task_id: UUID) -> ComplianceTask:
    return get_or_not_found(_task_qs(), "Compliance task not found.", id=task_id)


def list_tasks(*, params: Optional[Mapping[str, Any]] = None, at: Optional[datetime] = None) -> QuerySet[ComplianceTask]:
    """
    Query params:
      status, task_type, assigned_to, student, plan, overdue=true|false
    """
    params = params or {}
    qs = _task_qs()

    status = params.get("status")
    if status:
        if status not in ComplianceTaskStatus.values:
            raise ValidationError({"status": [f"Must be one of {ComplianceTaskStatus.values}."]})
        qs = qs.filter(status=status)

    task_type = params.get("task_type")
    if task_type:
        qs = qs.filter(task_type=task_type)

    assigned_to = params.get("assigned_to")
    if assigned_to:
        try:
            qs = qs.filter(assigned_to_user_id=int(assigned_to))
        except (TypeError, ValueError):
            raise ValidationError({"assigned_to": ["Must be a user id."]})

    student = params.get("student")
    if student:
        qs = qs.filter(student_id=_uuid_param("student", student))

    plan = params.get("plan")
    if plan:
        qs = qs.filter(plan_id=_uuid_param("plan", plan))

    overdue = params.get("overdue")
    if overdue:
        at = at or tz_now()
        if _parse_bool("overdue", overdue):
            qs = qs.filter(status__in=ACTIVE_TASK_STATUSES, due_date__lt=at)
        else:
            qs = qs.exclude(status__in=ACTIVE_TASK_STATUSES, due_date__lt=at)

    return _ordered(qs)


def _uuid_param(name: str, value) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError({name: ["Must be a valid UUID."]})


def my_tasks(*, user_id: int, status: Optional[str] = None) -> QuerySet[ComplianceTask]:
    qs = _task_qs().filter(assigned_to_user_id=user_id)
    if status:
        if status not in ComplianceTaskStatus.values:
            raise ValidationError({"status": [f"Must be one of {ComplianceTaskStatus.values}."]})
        qs = qs.filter(status=status)
    else:
        qs = qs.filter(status__in=ACTIVE_TASK_STATUSES)
    return _ordered(qs)


def dashboard(*, at: Optional[datetime] = None) -> dict:
    """
    Counts across active tasks plus the most urgent ones.
    """
    at = at or tz_now()
    active = _task_qs().filter(status__in=ACTIVE_TASK_STATUSES)

    return {
        "open_count": active.filter(status=ComplianceTaskStatus.OPEN).count(),
        "in_progress_count": active.filter(status=ComplianceTaskStatus.IN_PROGRESS).count(),
        "overdue_count": active.filter(due_date__lt=at).count(),
        "due_soon_count": active.filter(
            due_date__gte=at,
            due_date__lte=at + timedelta(days=DASHBOARD_WINDOW_DAYS),
        ).count(),
        "urgent": list(_ordered(active)[:DASHBOARD_URGENT_LIMIT]),
    }
