from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Model, QuerySet
from rest_framework.exceptions import NotFound


def get_or_not_found(source: type[Model] | QuerySet, message: str, **lookup):
    """
    Fetch one row or raise DRF NotFound. Malformed ids count as not found.
    """
    qs = source if isinstance(source, QuerySet) else source.objects.all()
    try:
        return qs.get(**lookup)
    except (qs.model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFound(message)
