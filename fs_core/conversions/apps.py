# fs_core/conversions/apps.py
from __future__ import annotations

from django.apps import AppConfig


class ConversionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "fs_core.conversions"
    label = "conversions"

    def ready(self) -> None:
        # registers the event handlers
        from fs_core.conversions import subscribers  # noqa: F401
