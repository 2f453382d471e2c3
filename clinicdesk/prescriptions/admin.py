"""
Prescriptions App - Admin
"""

from django.contrib import admin
from django.utils.html import format_html

from clinicdesk.core.admin import clinic_admin_site
from clinicdesk.prescriptions.models import Prescription, RefillRecord


STATUS_COLORS = {
    Prescription.STATUS_ACTIVE: "#34A853",
    Prescription.STATUS_ON_HOLD: "#FBBC05",
    Prescription.STATUS_COMPLETED: "#1A73E8",
    Prescription.STATUS_DISCONTINUED: "#EA4335",
}


class RefillRecordInline(admin.TabularInline):
    model = RefillRecord
    extra = 0
    fields = ("refill_date", "status", "method", "notes", "created_by")
    readonly_fields = fields
    can_delete = False


@admin.register(Prescription, site=clinic_admin_site)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "medication_name",
        "dosage_display",
        "patient",
        "doctor",
        "refills",
        "start_date",
        "status_badge",
    )
    list_filter = ("status", "route", "monitoring_required", "start_date")
    search_fields = ("medication_name", "patient__first_name", "patient__last_name", "indication")
    ordering = ("-start_date", "-id")
    raw_id_fields = ("patient", "doctor")
    list_per_page = 50
    inlines = [RefillRecordInline]

    readonly_fields = ("status", "status_reason", "created_at", "updated_at")

    fieldsets = (
        ("💊 Medication", {
            "fields": ("medication_name", "dosage", "dosage_unit", "frequency", "route", "quantity")
        }),
        ("👤 Patient & Prescriber", {
            "fields": ("patient", "doctor", "indication")
        }),
        ("🔁 Supply", {
            "fields": ("refills", "duration_days", "start_date", "end_date", "pharmacy_name", "pharmacy_phone")
        }),
        ("📝 Notes", {
            "fields": ("instructions", "monitoring_required", "notes")
        }),
        ("📊 Status", {
            "fields": ("status", "status_reason", "created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def dosage_display(self, obj):
        return f"{obj.dosage} {obj.dosage_unit}, {obj.frequency}"
    dosage_display.short_description = "Dosage"

    def status_badge(self, obj):
        return format_html(
            '<span class="status-badge" style="background-color: {}; color: white;">{}</span>',
            STATUS_COLORS.get(obj.status, "#5F6368"), obj.get_status_display()
        )
    status_badge.short_description = "Status"
