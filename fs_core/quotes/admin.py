from django.contrib import admin

from fs_core.quotes.models import Quote, QuoteLineItem


class QuoteLineItemInline(admin.TabularInline):
    model = QuoteLineItem
    extra = 0
    fields = ("position", "description", "quantity", "unit_price", "item_type", "line_total", "deficiency")
    readonly_fields = ("line_total",)


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ("quote_number", "customer_name", "status", "total", "expires_at")
    list_filter = ("status",)
    search_fields = ("quote_number", "customer_name", "customer_email")
    readonly_fields = ("subtotal", "discount_amount", "tax_amount", "total", "version")
    inlines = [QuoteLineItemInline]
