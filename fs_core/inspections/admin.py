from django.contrib import admin

from fs_core.inspections.models import ChecklistResult, Deficiency, Inspection


class DeficiencyInline(admin.TabularInline):
    model = Deficiency
    extra = 0
    fields = ("category", "severity", "status", "description", "quote")
    readonly_fields = ("status", "quote")


@admin.register(Inspection)
class InspectionAdmin(admin.ModelAdmin):
    list_display = ("inspection_number", "customer_name", "inspection_type", "status", "scheduled_date")
    list_filter = ("status", "inspection_type")
    search_fields = ("inspection_number", "customer_name", "site_address")
    inlines = [DeficiencyInline]


@admin.register(Deficiency)
class DeficiencyAdmin(admin.ModelAdmin):
    list_display = ("id", "inspection", "category", "severity", "status", "quote")
    list_filter = ("status", "severity", "category")
    readonly_fields = ("status", "quote", "version")


admin.site.register(ChecklistResult)
