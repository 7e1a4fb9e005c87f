from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from django.db.models import Q, QuerySet
from django.utils.timezone import now as tz_now
from rest_framework.exceptions import ValidationError

from sped_core.common.lookups import get_or_not_found
from sped_core.plans.models import PlanInstance
from sped_core.reviews.models import ReviewSchedule, ReviewScheduleStatus, ScheduleType

SUMMARY_WINDOW_DAYS = 30


def _schedule_qs() -> QuerySet[ReviewSchedule]:
    return ReviewSchedule.objects.select_related("plan", "plan__student")


def get_schedule(*, schedule_id: UUID) -> ReviewSchedule:
    return get_or_not_found(_schedule_qs(), "Review schedule not found.", id=schedule_id)


def list_plan_schedules(*, plan_id: UUID, params: Optional[Mapping[str, Any]] = None) -> QuerySet[ReviewSchedule]:
    """
    Schedules of one plan, soonest first. Optional filters: status, schedule_type (or its alias type).
    """
    plan = get_or_not_found(PlanInstance, "Plan not found.", id=plan_id)
    params = params or {}
    qs = _schedule_qs().filter(plan=plan)

    status = params.get("status")
    if status:
        if status not in ReviewScheduleStatus.values:
            raise ValidationError({"status": [f"Must be one of {ReviewScheduleStatus.values}."]})
        qs = qs.filter(status=status)

    schedule_type = params.get("schedule_type") or params.get("type")
    if schedule_type:
        if schedule_type not in ScheduleType.values:
            raise ValidationError({"schedule_type": [f"Must be one of {ScheduleType.values}."]})
        qs = qs.filter(schedule_type=schedule_type)

    return qs.order_by("due_date", "created_at")


def overdue_and_upcoming(*, within_days: int = 30, at: Optional[datetime] = None) -> dict:
    """
    Non-complete schedules due on or before at + within_days, split into
    overdue (past due or already marked OVERDUE) and upcoming.
    """
    at = at or tz_now()
    horizon = at + timedelta(days=within_days)

    base = _schedule_qs().filter(
        status__in=[ReviewScheduleStatus.OPEN, ReviewScheduleStatus.OVERDUE],
        due_date__lte=horizon,
    )
    overdue_q = Q(due_date__lt=at) | Q(status=ReviewScheduleStatus.OVERDUE)

    overdue = list(base.filter(overdue_q).order_by("due_date"))
    upcoming = list(base.exclude(overdue_q).order_by("due_date"))
    # fixed 30-day count, independent of within_days
    summary_horizon = at + timedelta(days=SUMMARY_WINDOW_DAYS)
    due_within_30 = sum(1 for s in overdue + upcoming if s.due_date <= summary_horizon)

    return {
        "overdue": overdue,
        "upcoming": upcoming,
        "overdue_count": len(overdue),
        "upcoming_count": len(upcoming),
        "total": len(overdue) + len(upcoming),
        "total_due_within_30_days": due_within_30,
    }
