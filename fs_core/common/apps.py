from django.apps import AppConfig


class CommonConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "fs_core.common"
    label = "common"

    def ready(self) -> None:
        # registers the JWT security scheme with drf-spectacular
        from fs_core.common import openapi  # noqa: F401
