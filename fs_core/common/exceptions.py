# fs_core/common/exceptions.py
"""
Domain error taxonomy.

Every error is a DRF APIException so it flows through the global exception handler
(fs_core.common.api.exceptions.api_exception_handler) and is rendered as the standard
error envelope with `code` = default_code.

Malformed input uses rest_framework.exceptions.ValidationError directly.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class DomainError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request rejected."
    default_code = "domain_error"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


class ConflictError(DomainError):
    """
    409 Conflict. Use when business rules block an action.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"


class IllegalTransition(ConflictError):
    default_detail = "Status transition is not allowed."
    default_code = "illegal_transition"

    def __init__(self, detail=None, *, current: str | None = None, event: str | None = None):
        if detail is None and current is not None and event is not None:
            detail = f"Cannot apply '{event}' to a record in status '{current}'."
        super().__init__(detail=detail)
        self.current = current
        self.event = event


class AlreadyConverted(ConflictError):
    default_detail = "Source document has already been converted."
    default_code = "already_converted"


class AlreadyQuoted(ConflictError):
    default_detail = "One or more deficiencies are already on an active quote."
    default_code = "already_quoted"


class AlreadyAssigned(ConflictError):
    default_detail = "Technician is already assigned to this job with that role."
    default_code = "already_assigned"


class NotAssigned(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Technician is not assigned to this job."
    default_code = "not_assigned"


class InvalidAmount(DomainError):
    default_detail = "Amount must be positive."
    default_code = "invalid_amount"


class ConcurrentModification(ConflictError):
    default_detail = "Record was modified by another request. Reload and retry."
    default_code = "concurrent_modification"


class QuoteLocked(ConflictError):
    default_detail = "Quote can only be edited while in draft."
    default_code = "quote_locked"


class AlreadyTerminal(ConflictError):
    default_detail = "Record is in a terminal status."
    default_code = "already_terminal"


class InvoiceLocked(ConflictError):
    default_detail = "Invoice lines can only be edited while in draft."
    default_code = "invoice_locked"
