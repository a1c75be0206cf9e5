# fs_core/common/concurrency.py
from __future__ import annotations

from typing import Iterable

from django.db.models import F
from django.utils import timezone

from fs_core.common.exceptions import ConcurrentModification


def check_version(instance, expected_version: int | None) -> None:
    """
    Raise if the caller read an older version than the one currently loaded.
    `None` means the caller did not ask for a version check.
    """
    if expected_version is None:
        return
    if int(expected_version) != instance.version:
        raise ConcurrentModification(
            f"{instance.__class__.__name__} is at version {instance.version}, "
            f"request was based on version {expected_version}."
        )


def save_versioned(instance, update_fields: Iterable[str], *, expected_version: int | None = None) -> None:
    """
    Compare-and-set write: the UPDATE only lands if the row still carries the version
    that was loaded into `instance`. On success the in-memory version is bumped.
    """
    check_version(instance, expected_version)

    fields = [f for f in update_fields if f not in ("version", "updated_at")]
    values = {name: getattr(instance, name) for name in fields}
    now = timezone.now()

    model = instance.__class__
    updated = (
        model.objects
        .filter(pk=instance.pk, version=instance.version)
        .update(version=F("version") + 1, updated_at=now, **values)
    )
    if updated != 1:
        raise ConcurrentModification()

    instance.version += 1
    instance.updated_at = now
