from __future__ import annotations

from typing import Optional

from sped_core.organizations.models import District, School


def get_school_by_code(code: str) -> Optional[School]:
    return School.objects.select_related("district").filter(code=code).first()


def get_district_by_code(code: str) -> Optional[District]:
    return District.objects.filter(code=code).first()
