# sped_core/common/api/exceptions.py
"""
Global DRF exception handler. Every error leaves the API as
{"error": {"code", "message", "details", "request_id"}}.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    """
    409: current state blocks the action (completed schedule, duplicate attachment, version race).
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"


def _error_code(exc: Exception) -> str:
    # DRF's ValidationError.default_code is "invalid"
    if isinstance(exc, ValidationError):
        return "validation_error"
    if isinstance(exc, Http404):
        return "not_found"
    if isinstance(exc, DjangoPermissionDenied):
        return "permission_denied"
    return getattr(exc, "default_code", None) or "api_error"


def _envelope(request, code: str, message: str, details: Any = None) -> dict[str, Any]:
    request_id = getattr(request, "request_id", None) or uuid.uuid4().hex
    if request is not None:
        request.request_id = request_id
    return {"error": {"code": code, "message": message, "details": details, "request_id": request_id}}


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled API error", exc_info=exc)
        return Response(
            _envelope(request, "server_error", "Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    # a top-level "detail" becomes the message; anything beside it stays in details
    data = response.data
    message, details = "Request failed.", data
    if isinstance(data, dict) and "detail" in data:
        message = str(data["detail"])
        details = {k: v for k, v in data.items() if k != "detail"} or None

    return Response(
        _envelope(request, _error_code(exc), message, details),
        status=response.status_code,
        headers=response.headers,
    )
