# sped_core/compliance/models.py
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.timezone import now as tz_now

from sped_core.common.models import UUIDModel
from sped_core.plans.models import PlanInstance, Student
from sped_core.reviews.models import ReviewSchedule


class ComplianceTaskType(models.TextChoices):
    REVIEW_DUE_SOON = "REVIEW_DUE_SOON", "Review Due Soon"
    REVIEW_OVERDUE = "REVIEW_OVERDUE", "Review Overdue"
    DOCUMENT_REQUIRED = "DOCUMENT_REQUIRED", "Document Required"
    SIGNATURE_NEEDED = "SIGNATURE_NEEDED", "Signature Needed"
    MEETING_REQUIRED = "MEETING_REQUIRED", "Meeting Required"


class ComplianceTaskStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    COMPLETE = "COMPLETE", "Complete"
    DISMISSED = "DISMISSED", "Dismissed"


ACTIVE_TASK_STATUSES = (ComplianceTaskStatus.OPEN, ComplianceTaskStatus.IN_PROGRESS)
TERMINAL_TASK_STATUSES = (ComplianceTaskStatus.COMPLETE, ComplianceTaskStatus.DISMISSED)


class ComplianceTask(UUIDModel):
    """
    Actionable unit of compliance work, usually derived from a review schedule.
    """
    task_type = models.CharField(max_length=32, choices=ComplianceTaskType.choices, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=ComplianceTaskStatus.choices,
        default=ComplianceTaskStatus.OPEN,
        db_index=True,
    )

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    priority = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )

    review_schedule = models.ForeignKey(
        ReviewSchedule,
        on_delete=models.PROTECT,
        related_name="tasks",
        null=True,
        blank=True,
    )
    plan = models.ForeignKey(
        PlanInstance,
        on_delete=models.PROTECT,
        related_name="compliance_tasks",
        null=True,
        blank=True,
    )
    student = models.ForeignKey(
        Student,
        on_delete=models.PROTECT,
        related_name="compliance_tasks",
        null=True,
        blank=True,
    )

    assigned_to_user_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    created_by_user_id = models.BigIntegerField(null=True, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by_user_id = models.BigIntegerField(null=True, blank=True)

    dismissed_at = models.DateTimeField(null=True, blank=True)
    dismissed_by_user_id = models.BigIntegerField(null=True, blank=True)
    dismiss_reason = models.TextField(blank=True, default="")

    class Meta:
        db_table = "compliance_task"
        indexes = [
            models.Index(fields=["status", "due_date"]),
            models.Index(fields=["assigned_to_user_id", "status"]),
            models.Index(fields=["review_schedule", "status"]),
        ]

    @property
    def is_overdue(self) -> bool:
        if not self.due_date:
            return False
        if self.status not in ACTIVE_TASK_STATUSES:
            return False
        return self.due_date < tz_now()

    def __str__(self) -> str:
        return f"{self.task_type}: {self.title} ({self.status})"
