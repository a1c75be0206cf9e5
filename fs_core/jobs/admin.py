from django.contrib import admin

from fs_core.jobs.models import Job, JobAssignment, JobEvent


class JobAssignmentInline(admin.TabularInline):
    model = JobAssignment
    extra = 0


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("job_number", "customer_name", "job_type", "priority", "status", "scheduled_date")
    list_filter = ("status", "priority", "job_type")
    search_fields = ("job_number", "customer_name", "site_address")
    readonly_fields = ("status", "held_from_status", "quote", "version")
    inlines = [JobAssignmentInline]


@admin.register(JobEvent)
class JobEventAdmin(admin.ModelAdmin):
    list_display = ("job", "event_type", "from_state", "to_state", "actor_id", "occurred_at")
    list_filter = ("event_type",)
    ordering = ("-occurred_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
