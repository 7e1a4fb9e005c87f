# sped_core/reviews/services.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import ValidationError

from sped_core.common.api.exceptions import ConflictError
from sped_core.common.lookups import get_or_not_found
from sped_core.common.permissions import SYSTEM_ACTOR, Action, Actor, require
from sped_core.compliance.services import ComplianceTaskService
from sped_core.plans.models import PlanInstance
from sped_core.reviews.models import (
    MAX_LEAD_DAYS,
    MIN_LEAD_DAYS,
    ReviewSchedule,
    ReviewScheduleStatus,
    ScheduleType,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _validate_lead_days(lead_days) -> int:
    if isinstance(lead_days, bool) or not isinstance(lead_days, int):
        raise ValidationError({"lead_days": "Must be an integer."})
    if not MIN_LEAD_DAYS <= lead_days <= MAX_LEAD_DAYS:
        raise ValidationError({"lead_days": f"Must be between {MIN_LEAD_DAYS} and {MAX_LEAD_DAYS}."})
    return lead_days


class ReviewScheduleService:
    """
    Review schedule write-model.

    Notes:
    - Creation evaluates the lead window once, in the same transaction.
    - Updates never re-evaluate the lead window.
    - complete/delete cascade to the schedule's compliance tasks atomically.
    """

    @staticmethod
    def _get(schedule_id: UUID, *, for_update: bool = False) -> ReviewSchedule:
        qs = ReviewSchedule.objects.select_related("plan", "plan__student")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        return get_or_not_found(qs, "Review schedule not found.", id=schedule_id)

    @staticmethod
    @transaction.atomic
    def create_schedule(
        *,
        actor: Actor,
        plan_id: UUID,
        schedule_type: str,
        due_date: datetime,
        lead_days: Optional[int] = None,
        assigned_to_user_id: Optional[int] = None,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> ReviewSchedule:
        require(actor, Action.REVIEW_MANAGE, "Not authorized to create review schedules.")

        if schedule_type not in ScheduleType.values:
            raise ValidationError({"schedule_type": f"Must be one of {ScheduleType.values}."})
        if due_date is None:
            raise ValidationError({"due_date": "This field is required."})
        if lead_days is None:
            lead_days = settings.COMPLIANCE_DEFAULT_LEAD_DAYS
        lead_days = _validate_lead_days(lead_days)

        plan = get_or_not_found(PlanInstance.objects.select_related("student"), "Plan not found.", id=plan_id)

        schedule = ReviewSchedule.objects.create(
            plan=plan,
            schedule_type=schedule_type,
            due_date=due_date,
            lead_days=lead_days,
            status=ReviewScheduleStatus.OPEN,
            assigned_to_user_id=assigned_to_user_id,
            notes=notes or "",
            created_by_user_id=actor.id,
        )

        ComplianceTaskService.maybe_create_lead_window_task(schedule=schedule, actor=actor, at=at or now())
        return schedule

    @staticmethod
    @transaction.atomic
    def update_schedule(
        *,
        actor: Actor,
        schedule_id: UUID,
        due_date: Optional[datetime] = None,
        lead_days: Optional[int] = None,
        notes: Optional[str] = None,
        assigned_to_user_id=_UNSET,
    ) -> ReviewSchedule:
        require(actor, Action.REVIEW_MANAGE, "Not authorized to update review schedules.")
        schedule = ReviewScheduleService._get(schedule_id, for_update=True)

        if schedule.status == ReviewScheduleStatus.COMPLETE:
            raise ConflictError("Cannot update a completed review schedule.")

        update_fields: list[str] = []
        if due_date is not None:
            schedule.due_date = due_date
            update_fields.append("due_date")
            # moved to a due date not yet passed
            if schedule.status == ReviewScheduleStatus.OVERDUE and due_date >= now():
                schedule.status = ReviewScheduleStatus.OPEN
                update_fields.append("status")
        if lead_days is not None:
            schedule.lead_days = _validate_lead_days(lead_days)
            update_fields.append("lead_days")
        if notes is not None:
            schedule.notes = notes
            update_fields.append("notes")
        if assigned_to_user_id is not _UNSET:
            schedule.assigned_to_user_id = assigned_to_user_id
            update_fields.append("assigned_to_user_id")

        if update_fields:
            update_fields.append("updated_at")
            schedule.save(update_fields=update_fields)
        return schedule

    @staticmethod
    @transaction.atomic
    def complete_schedule(
        *,
        actor: Actor,
        schedule_id: UUID,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> ReviewSchedule:
        """
        Marks the schedule COMPLETE and completes its OPEN/IN_PROGRESS tasks.
        Any failure in the task cascade rolls back the schedule change.
        """
        require(actor, Action.REVIEW_MANAGE, "Not authorized to complete review schedules.")
        schedule = ReviewScheduleService._get(schedule_id, for_update=True)

        if schedule.status == ReviewScheduleStatus.COMPLETE:
            raise ConflictError("Review schedule is already complete.")

        at = at or now()
        schedule.status = ReviewScheduleStatus.COMPLETE
        schedule.completed_at = at
        schedule.completed_by_user_id = actor.id
        update_fields = ["status", "completed_at", "completed_by_user_id", "updated_at"]

        if notes:
            schedule.notes = f"{schedule.notes or ''}\n\nCompletion notes: {notes}".strip()
            update_fields.append("notes")

        schedule.save(update_fields=update_fields)

        completed = ComplianceTaskService.complete_open_for_schedule(schedule=schedule, actor=actor, at=at)
        logger.info("Completed review schedule %s (%d task(s) completed)", schedule.id, completed)
        return schedule

    @staticmethod
    @transaction.atomic
    def delete_schedule(*, actor: Actor, schedule_id: UUID) -> int:
        """
        Deletes the schedule and all of its tasks. Returns the number of tasks removed.
        """
        require(actor, Action.REVIEW_DELETE, "Only administrators can delete review schedules.")
        schedule = ReviewScheduleService._get(schedule_id, for_update=True)

        removed = ComplianceTaskService.delete_for_schedule(schedule=schedule)
        schedule_pk = schedule.pk
        schedule.delete()

        logger.info("Deleted review schedule %s (%d task(s) removed)", schedule_pk, removed)
        return removed

    @staticmethod
    @transaction.atomic
    def mark_overdue(
        *,
        actor: Actor = SYSTEM_ACTOR,
        at: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> int:
        """
        Persists OPEN -> OVERDUE for schedules whose due date has passed.
        Returns the number of schedules affected (or that would be, with dry_run).
        """
        require(actor, Action.REVIEW_MANAGE, "Not authorized to update review schedules.")
        at = at or now()
        qs = ReviewSchedule.objects.filter(status=ReviewScheduleStatus.OPEN, due_date__lt=at)

        if dry_run:
            return qs.count()

        updated = qs.update(status=ReviewScheduleStatus.OVERDUE, updated_at=at)
        if updated:
            logger.info("Marked %d review schedule(s) overdue", updated)
        return updated
