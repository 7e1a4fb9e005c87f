# sped_core/plans/models.py
from django.db import models

from sped_core.common.models import PlanType, UUIDModel
from sped_core.organizations.models import School


class PlanStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    ACTIVE = "ACTIVE", "Active"
    ARCHIVED = "ARCHIVED", "Archived"


# A concrete plan is never "ALL"; that value only exists for rule pack targeting.
PLAN_INSTANCE_TYPE_CHOICES = [c for c in PlanType.choices if c[0] != PlanType.ALL]


class Student(UUIDModel):
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128)
    school = models.ForeignKey(
        School,
        on_delete=models.PROTECT,
        related_name="students",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "plans_student"
        indexes = [
            models.Index(fields=["last_name", "first_name"]),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return self.full_name


class PlanInstance(UUIDModel):
    """
    A student's IEP / 504 / BIP. Review schedules and compliance tasks hang off it.
    """
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="plans")
    plan_type = models.CharField(max_length=16, choices=PLAN_INSTANCE_TYPE_CHOICES, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=PlanStatus.choices,
        default=PlanStatus.DRAFT,
        db_index=True,
    )

    class Meta:
        db_table = "plans_plan_instance"

    def __str__(self) -> str:
        return f"{self.plan_type} for {self.student}"
