# fs_core/common/api/exceptions.py
"""
Global DRF exception handler.

Every error leaves the API as
    {"error": {"code", "message", "details", "request_id"}}
with the request id also echoed in the X-Request-ID response header.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, NotFound, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from fs_core.common.exceptions import ConflictError, DomainError, IllegalTransition

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "HTTP_X_REQUEST_ID"

_FIXED_CODES: tuple[tuple[type, str], ...] = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (PermissionDenied, "permission_denied"),
    (NotFound, "not_found"),
    (Http404, "not_found"),
)


def ensure_request_id(request) -> str:
    """Reuse the caller's X-Request-ID when present, else mint one and pin it on the request."""
    if request is None:
        return uuid.uuid4().hex
    rid = getattr(request, "request_id", None)
    if not rid:
        rid = request.META.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


def _translate(exc: Exception) -> Exception:
    # ORM misses and model-level guards have no HTTP meaning of their own
    if isinstance(exc, ObjectDoesNotExist):
        return NotFound(str(exc) or "Not found.")
    if isinstance(exc, DjangoValidationError):
        return ConflictError("; ".join(exc.messages))
    if isinstance(exc, ProtectedError):
        return ConflictError("Record is referenced by history and cannot be deleted.")
    return exc


def _code_for(exc: Exception, http_status: int) -> str:
    if isinstance(exc, DomainError):
        return exc.default_code
    for klass, code in _FIXED_CODES:
        if isinstance(exc, klass):
            return code
    if isinstance(exc, APIException):
        return getattr(exc, "default_code", None) or "api_error"
    return "server_error" if http_status >= 500 else "error"


def _split_payload(data: Any) -> tuple[str, Any]:
    if isinstance(data, dict) and "detail" in data:
        rest = {k: v for k, v in data.items() if k != "detail"}
        return str(data["detail"]), rest or None
    if isinstance(data, list) and len(data) == 1:
        return str(data[0]), None
    return "Request failed.", data


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    exc = _translate(exc)

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled API error", exc_info=exc)
        body = build_error_envelope(request=request, code="server_error", message="Unexpected server error.")
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR, headers={"X-Request-ID": body["error"]["request_id"]})

    message, details = _split_payload(response.data)
    if isinstance(exc, IllegalTransition) and exc.current is not None:
        details = {**(details or {}), "current": exc.current, "event": exc.event}

    body = build_error_envelope(
        request=request,
        code=_code_for(exc, response.status_code),
        message=message,
        details=details,
    )
    headers = dict(response.headers)
    headers["X-Request-ID"] = body["error"]["request_id"]
    return Response(body, status=response.status_code, headers=headers)
