"""
Billing App - Admin
"""

from django.contrib import admin
from django.utils.html import format_html

from clinicdesk.billing.models import Invoice, InvoiceLineItem, Payment
from clinicdesk.core.admin import clinic_admin_site


STATUS_COLORS = {
    Invoice.STATUS_DRAFT: "#9AA0A6",
    Invoice.STATUS_PENDING: "#1A73E8",
    Invoice.STATUS_PARTIALLY_PAID: "#FBBC05",
    Invoice.STATUS_PAID: "#34A853",
    Invoice.STATUS_OVERDUE: "#EA4335",
    Invoice.STATUS_CANCELLED: "#5F6368",
}


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0
    readonly_fields = ("item", "quantity", "unit_price", "total")
    can_delete = False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("payment_date", "amount", "payment_method", "reference")
    readonly_fields = fields
    can_delete = False


@admin.register(Invoice, site=clinic_admin_site)
class InvoiceAdmin(admin.ModelAdmin):
    """Invoices are edited through the API so totals stay consistent; admin is read-only."""

    list_display = (
        "invoice_number",
        "patient",
        "invoice_date",
        "due_date",
        "total_amount",
        "balance",
        "status_badge",
    )
    list_filter = ("status", "service_type", "invoice_date")
    search_fields = ("invoice_number", "patient__first_name", "patient__last_name")
    ordering = ("-invoice_date", "-id")
    date_hierarchy = "invoice_date"
    list_per_page = 50
    inlines = [InvoiceLineItemInline, PaymentInline]

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def status_badge(self, obj):
        return format_html(
            '<span class="status-badge" style="background-color: {}; color: white;">{}</span>',
            STATUS_COLORS.get(obj.status, "#5F6368"), obj.get_status_display()
        )
    status_badge.short_description = "Status"


@admin.register(Payment, site=clinic_admin_site)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice", "amount", "payment_date", "payment_method", "reference")
    list_filter = ("payment_method", "payment_date")
    search_fields = ("invoice__invoice_number", "reference")
    ordering = ("-payment_date", "-id")
    list_per_page = 50

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
