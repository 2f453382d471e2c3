"""
Patients App - Admin
"""

from django.contrib import admin
from django.utils.html import format_html

from clinicdesk.core.admin import clinic_admin_site
from clinicdesk.patients.models import Patient


@admin.register(Patient, site=clinic_admin_site)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "full_name_display",
        "birth_date",
        "age_display",
        "insurance_provider",
        "status",
        "created_at",
    )
    list_filter = ("status", "gender", "created_at")
    search_fields = ("first_name", "last_name", "email", "insurance_number")
    ordering = ("last_name", "first_name")
    list_per_page = 50

    readonly_fields = ("id", "created_at", "updated_at")

    fieldsets = (
        ("👤 Patient", {
            "fields": ("first_name", "last_name", "birth_date", "gender", "status")
        }),
        ("📞 Contact", {
            "fields": ("phone", "email", "address")
        }),
        ("🩺 Clinical", {
            "fields": ("allergies", "current_medications", "medical_history")
        }),
        ("💳 Insurance", {
            "fields": ("insurance_provider", "insurance_number")
        }),
        ("📊 System", {
            "fields": ("id", "created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def full_name_display(self, obj):
        return format_html(
            '<strong style="color: #1A73E8;">{}, {}</strong>',
            obj.last_name, obj.first_name
        )
    full_name_display.short_description = "Name"

    def age_display(self, obj):
        return format_html('<span style="color: #5F6368;">{} years</span>', obj.age())
    age_display.short_description = "Age"
