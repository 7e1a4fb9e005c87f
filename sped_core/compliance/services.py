# sped_core/compliance/services.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import ValidationError

from sped_core.common.api.exceptions import ConflictError
from sped_core.common.lookups import get_or_not_found
from sped_core.common.permissions import Action, Actor, require
from sped_core.compliance.models import (
    ACTIVE_TASK_STATUSES,
    TERMINAL_TASK_STATUSES,
    ComplianceTask,
    ComplianceTaskStatus,
    ComplianceTaskType,
)
from sped_core.plans.models import PlanInstance
from sped_core.reviews.models import ReviewSchedule

logger = logging.getLogger(__name__)

_UNSET = object()

PRIORITY_NORMAL = 1
PRIORITY_ELEVATED = 2


def is_within_lead_window(due_date: datetime, lead_days: int, at: datetime) -> bool:
    """
    True once `at` has reached due_date - lead_days.
    """
    return due_date - timedelta(days=lead_days) <= at


class ComplianceTaskService:
    """
    Compliance task write-model.

    Notes:
    - Workflow: OPEN -> IN_PROGRESS -> COMPLETE, or OPEN/IN_PROGRESS -> DISMISSED (with reason).
    - COMPLETE and DISMISSED are terminal.
    - Lead-window tasks are created once, when the schedule is created; nothing re-scans later.
    - complete_open_for_schedule / delete_for_schedule are the cascade primitives used by
      ReviewScheduleService and must run inside its transaction.
    """

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get(task_id: UUID, *, for_update: bool = False) -> ComplianceTask:
        qs = ComplianceTask.objects.select_for_update() if for_update else ComplianceTask.objects.all()
        return get_or_not_found(qs, "Compliance task not found.", id=task_id)

    @staticmethod
    def _validate_priority(priority) -> None:
        if isinstance(priority, bool) or not isinstance(priority, int) or not 1 <= priority <= 5:
            raise ValidationError({"priority": "Must be an integer between 1 and 5."})

    # -------------------------
    # Lead window generator
    # -------------------------
    @staticmethod
    @transaction.atomic
    def maybe_create_lead_window_task(
        *,
        schedule: ReviewSchedule,
        actor: Optional[Actor] = None,
        at: Optional[datetime] = None,
    ) -> Optional[ComplianceTask]:
        """
        Creates exactly one REVIEW_DUE_SOON task if the schedule is inside its lead window
        at `at` (default: now). Returns None when outside the window or when the task exists.
        """
        at = at or now()
        if not is_within_lead_window(schedule.due_date, schedule.lead_days, at):
            return None

        existing = ComplianceTask.objects.filter(
            review_schedule=schedule,
            task_type=ComplianceTaskType.REVIEW_DUE_SOON,
        ).first()
        if existing is not None:
            return None

        plan = schedule.plan
        student = plan.student
        task = ComplianceTask.objects.create(
            task_type=ComplianceTaskType.REVIEW_DUE_SOON,
            status=ComplianceTaskStatus.OPEN,
            title=f"{schedule.get_schedule_type_display()} due soon",
            description=f"Review for {student.full_name} is due on {schedule.due_date:%Y-%m-%d}",
            due_date=schedule.due_date,
            priority=PRIORITY_ELEVATED,
            review_schedule=schedule,
            plan=plan,
            student=student,
            assigned_to_user_id=schedule.assigned_to_user_id,
            created_by_user_id=actor.id if actor else None,
        )
        logger.info("Created lead window task %s for review schedule %s", task.id, schedule.id)
        return task

    # -------------------------
    # Cascades (called inside the schedule transaction)
    # -------------------------
    @staticmethod
    def complete_open_for_schedule(*, schedule: ReviewSchedule, actor: Actor, at: datetime) -> int:
        return ComplianceTask.objects.filter(
            review_schedule=schedule,
            status__in=ACTIVE_TASK_STATUSES,
        ).update(
            status=ComplianceTaskStatus.COMPLETE,
            completed_at=at,
            completed_by_user_id=actor.id,
            updated_at=at,
        )

    @staticmethod
    def delete_for_schedule(*, schedule: ReviewSchedule) -> int:
        deleted, _ = ComplianceTask.objects.filter(review_schedule=schedule).delete()
        return deleted

    # -------------------------
    # Manual tasks
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_task(
        *,
        actor: Actor,
        task_type: str,
        title: str,
        description: str = "",
        due_date: Optional[datetime] = None,
        priority: int = PRIORITY_NORMAL,
        plan_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        review_schedule_id: Optional[UUID] = None,
        assigned_to_user_id: Optional[int] = None,
    ) -> ComplianceTask:
        require(actor, Action.TASK_MANAGE, "Not authorized to create compliance tasks.")

        if task_type not in ComplianceTaskType.values:
            raise ValidationError({"task_type": f"Must be one of {ComplianceTaskType.values}."})
        if not title:
            raise ValidationError({"title": "This field is required."})
        ComplianceTaskService._validate_priority(priority)

        schedule = None
        plan = None
        if review_schedule_id:
            schedule = get_or_not_found(
                ReviewSchedule.objects.select_related("plan"),
                "Review schedule not found.",
                id=review_schedule_id,
            )
            plan = schedule.plan
        if plan_id:
            plan = get_or_not_found(PlanInstance, "Plan not found.", id=plan_id)
            if schedule is not None and schedule.plan_id != plan.id:
                raise ValidationError({"plan_id": "Does not match the review schedule's plan."})

        if plan is not None:
            if student_id and str(plan.student_id) != str(student_id):
                raise ValidationError({"student_id": "Does not match the plan's student."})
            student_id = plan.student_id

        return ComplianceTask.objects.create(
            task_type=task_type,
            status=ComplianceTaskStatus.OPEN,
            title=title,
            description=description or "",
            due_date=due_date,
            priority=priority,
            review_schedule=schedule,
            plan=plan,
            student_id=student_id,
            assigned_to_user_id=assigned_to_user_id,
            created_by_user_id=actor.id,
        )

    @staticmethod
    @transaction.atomic
    def update_task(
        *,
        actor: Actor,
        task_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        due_date=_UNSET,
        priority: Optional[int] = None,
        assigned_to_user_id=_UNSET,
    ) -> ComplianceTask:
        """
        Edits descriptive fields. Status moves only through start/complete/dismiss.
        """
        require(actor, Action.TASK_MANAGE, "Not authorized to update compliance tasks.")
        task = ComplianceTaskService._get(task_id, for_update=True)

        if task.status in TERMINAL_TASK_STATUSES:
            raise ConflictError(f"Cannot edit a {task.status} task.")

        update_fields: list[str] = []
        if title is not None:
            if not title:
                raise ValidationError({"title": "This field may not be blank."})
            task.title = title
            update_fields.append("title")
        if description is not None:
            task.description = description
            update_fields.append("description")
        if due_date is not _UNSET:
            task.due_date = due_date
            update_fields.append("due_date")
        if priority is not None:
            ComplianceTaskService._validate_priority(priority)
            task.priority = priority
            update_fields.append("priority")
        if assigned_to_user_id is not _UNSET:
            task.assigned_to_user_id = assigned_to_user_id
            update_fields.append("assigned_to_user_id")

        if update_fields:
            update_fields.append("updated_at")
            task.save(update_fields=update_fields)
        return task

    # -------------------------
    # Workflow
    # -------------------------
    @staticmethod
    @transaction.atomic
    def start_task(*, actor: Actor, task_id: UUID) -> ComplianceTask:
        require(actor, Action.TASK_MANAGE, "Not authorized to update compliance tasks.")
        task = ComplianceTaskService._get(task_id, for_update=True)

        if task.status != ComplianceTaskStatus.OPEN:
            raise ConflictError("Only OPEN task can be started.")

        task.status = ComplianceTaskStatus.IN_PROGRESS
        task.save(update_fields=["status", "updated_at"])
        return task

    @staticmethod
    @transaction.atomic
    def complete_task(*, actor: Actor, task_id: UUID, notes: Optional[str] = None) -> ComplianceTask:
        require(actor, Action.TASK_MANAGE, "Not authorized to complete compliance tasks.")
        task = ComplianceTaskService._get(task_id, for_update=True)

        if task.status in TERMINAL_TASK_STATUSES:
            raise ConflictError(f"Task is already {task.status}.")

        task.status = ComplianceTaskStatus.COMPLETE
        task.completed_at = now()
        task.completed_by_user_id = actor.id
        update_fields = ["status", "completed_at", "completed_by_user_id", "updated_at"]

        if notes:
            task.description = f"{task.description or ''}\n\nCompletion notes: {notes}".strip()
            update_fields.append("description")

        task.save(update_fields=update_fields)
        return task

    @staticmethod
    @transaction.atomic
    def dismiss_task(*, actor: Actor, task_id: UUID, reason: str) -> ComplianceTask:
        require(actor, Action.TASK_MANAGE, "Not authorized to dismiss compliance tasks.")
        if not reason or not reason.strip():
            raise ValidationError({"reason": "A reason is required to dismiss a task."})

        task = ComplianceTaskService._get(task_id, for_update=True)
        if task.status in TERMINAL_TASK_STATUSES:
            raise ConflictError(f"Task is already {task.status}.")

        task.status = ComplianceTaskStatus.DISMISSED
        task.dismissed_at = now()
        task.dismissed_by_user_id = actor.id
        task.dismiss_reason = reason.strip()
        task.save(update_fields=["status", "dismissed_at", "dismissed_by_user_id", "dismiss_reason", "updated_at"])
        return task
