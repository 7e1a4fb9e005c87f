# sped_core/common/models.py
from __future__ import annotations

import uuid
from django.db import models


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UUIDModel(TimeStampedModel):
    """
    UUID primary key + timestamps. Base for every domain entity.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class PlanType(models.TextChoices):
    IEP = "IEP", "IEP"
    PLAN504 = "PLAN504", "Section 504 Plan"
    BIP = "BIP", "Behavior Intervention Plan"
    ALL = "ALL", "All plan types"
