# sped_core/reviews/models.py
from datetime import timedelta

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.timezone import now as tz_now

from sped_core.common.models import UUIDModel
from sped_core.plans.models import PlanInstance

MIN_LEAD_DAYS = 1
MAX_LEAD_DAYS = 365


class ScheduleType(models.TextChoices):
    IEP_ANNUAL_REVIEW = "IEP_ANNUAL_REVIEW", "IEP Annual Review"
    IEP_REEVALUATION = "IEP_REEVALUATION", "IEP Reevaluation"
    PLAN_AMENDMENT_REVIEW = "PLAN_AMENDMENT_REVIEW", "Plan Amendment Review"
    SECTION504_PERIODIC_REVIEW = "SECTION504_PERIODIC_REVIEW", "Section 504 Periodic Review"
    BIP_REVIEW = "BIP_REVIEW", "BIP Review"


class ReviewScheduleStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    OVERDUE = "OVERDUE", "Overdue"
    COMPLETE = "COMPLETE", "Complete"


class ReviewSchedule(UUIDModel):
    """
    A tracked compliance due date for one plan.
    OPEN/OVERDUE -> COMPLETE exactly once; COMPLETE is terminal.
    """
    plan = models.ForeignKey(PlanInstance, on_delete=models.PROTECT, related_name="review_schedules")

    schedule_type = models.CharField(max_length=40, choices=ScheduleType.choices, db_index=True)
    due_date = models.DateTimeField(db_index=True)
    lead_days = models.PositiveSmallIntegerField(
        default=30,
        validators=[MinValueValidator(MIN_LEAD_DAYS), MaxValueValidator(MAX_LEAD_DAYS)],
    )

    status = models.CharField(
        max_length=16,
        choices=ReviewScheduleStatus.choices,
        default=ReviewScheduleStatus.OPEN,
        db_index=True,
    )

    assigned_to_user_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    notes = models.TextField(blank=True, default="")

    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by_user_id = models.BigIntegerField(null=True, blank=True)
    created_by_user_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "reviews_review_schedule"
        indexes = [
            models.Index(fields=["status", "due_date"]),
            models.Index(fields=["plan", "status"]),
        ]

    @property
    def lead_date(self):
        return self.due_date - timedelta(days=self.lead_days)

    @property
    def is_overdue(self) -> bool:
        """
        Stored OVERDUE, or still OPEN with the due date passed.
        """
        if self.status == ReviewScheduleStatus.OVERDUE:
            return True
        return self.status == ReviewScheduleStatus.OPEN and self.due_date < tz_now()

    def __str__(self) -> str:
        return f"{self.schedule_type} due {self.due_date:%Y-%m-%d} ({self.status})"
