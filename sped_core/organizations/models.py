# sped_core/organizations/models.py
from django.db import models

from sped_core.common.models import UUIDModel


class District(UUIDModel):
    """
    Local education agency. `code` is the scope id used by DISTRICT rule packs;
    `state_code` is the scope id used by STATE rule packs.
    """
    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    state_code = models.CharField(max_length=2, db_index=True)

    class Meta:
        db_table = "organizations_district"

    def save(self, *args, **kwargs):
        self.state_code = (self.state_code or "").upper()
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class School(UUIDModel):
    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    district = models.ForeignKey(District, on_delete=models.PROTECT, related_name="schools")

    class Meta:
        db_table = "organizations_school"

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
