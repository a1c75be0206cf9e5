from django.contrib import admin

from fs_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("occurred_at", "event_code", "entity_type", "entity_id", "actor_user")
    list_filter = ("entity_type", "event_code")
    search_fields = ("event_code", "entity_id")
    readonly_fields = ("event_code", "entity_type", "entity_id", "actor_user", "occurred_at", "metadata")
    date_hierarchy = "occurred_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
