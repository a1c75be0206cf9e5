# fs_core/billing/admin.py
from __future__ import annotations

from django.contrib import admin

from fs_core.billing.models import Invoice, InvoiceLineItem, Payment


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0
    fields = ("position", "description", "quantity", "unit_price", "item_type", "line_total")
    readonly_fields = ("line_total",)


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer_name", "status", "total", "amount_paid", "due_date")
    list_filter = ("status",)
    search_fields = ("invoice_number", "customer_name", "customer_email")
    readonly_fields = ("subtotal", "tax_amount", "total", "amount_paid", "version")
    inlines = [InvoiceLineItemInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice", "amount", "kind", "payment_method", "status", "payment_date")
    list_filter = ("kind", "payment_method", "status")
    search_fields = ("reference", "invoice__invoice_number")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
