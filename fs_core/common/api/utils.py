from __future__ import annotations

from uuid import UUID

from rest_framework.exceptions import ValidationError


def uuid_or_none(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError({field_name: "Invalid UUID"})


def int_or_none(value: str | None, field_name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field_name: "Integer expected"})


def actor_id(request) -> int | None:
    """
    Authenticated user id for audit/event attribution.
    """
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user.id


def with_warnings(data, warnings: list[str]) -> dict:
    out = dict(data)
    out["warnings"] = list(warnings)
    return out
