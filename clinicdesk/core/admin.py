"""
ClinicDesk - Custom Admin Site & Admin Classes
"""

from datetime import timedelta

from django.contrib import admin
from django.contrib.admin import AdminSite
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils import timezone
from django.utils.html import format_html
from django.utils.safestring import mark_safe

from .models import AuditLog, Role, User


# ============================================================================
# Custom AdminSite
# ============================================================================
class ClinicAdminSite(AdminSite):
    """Admin site with practice branding and dashboard links."""
    site_header = "🏥 ClinicDesk - Practice Management"
    site_title = "ClinicDesk Admin"
    index_title = "System overview"
    site_url = None

    def each_context(self, request):
        context = super().each_context(request)
        context['site_subtitle'] = 'Patients, Billing & Prescriptions'
        context['dashboard_api_url'] = '/api/dashboard/'
        return context


clinic_admin_site = ClinicAdminSite(name='clinicadmin')


ROLE_COLORS = {
    "admin": "#EA4335",
    "doctor": "#1A73E8",
    "assistant": "#34A853",
    "billing": "#FBBC05",
    "nurse": "#9334E6",
}


# ============================================================================
# Role Admin
# ============================================================================
@admin.register(Role, site=clinic_admin_site)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("name", "label", "user_count_badge")
    search_fields = ("name", "label")
    ordering = ("name",)
    list_per_page = 50

    def user_count_badge(self, obj):
        """Number of users holding this role."""
        count = obj.users.count()
        if count == 0:
            return mark_safe('<span style="color: #9AA0A6; font-style: italic;">0 users</span>')
        return format_html(
            '<span class="status-badge" style="background-color: {}; color: white;">{} users</span>',
            ROLE_COLORS.get(obj.name, "#5F6368"), count
        )
    user_count_badge.short_description = "Assigned"


# ============================================================================
# User Admin
# ============================================================================
@admin.register(User, site=clinic_admin_site)
class UserAdmin(DjangoUserAdmin):
    list_display = (
        "username",
        "full_name_display",
        "email",
        "role_badge",
        "status_badge",
        "last_login_display",
    )
    list_filter = ("role", "is_staff", "is_active", "is_superuser")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("username",)
    list_per_page = 50

    fieldsets = (
        ("🔐 Authentication", {
            "fields": ("username", "password")
        }),
        ("👤 Personal data", {
            "fields": ("first_name", "last_name", "email", "phone", "role")
        }),
        ("🛡️ Permissions", {
            "fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions"),
            "classes": ("collapse",)
        }),
        ("📅 Timestamps", {
            "fields": ("last_login", "date_joined"),
            "classes": ("collapse",)
        }),
    )

    add_fieldsets = (
        ("✨ New user", {
            "classes": ("wide",),
            "fields": ("username", "password1", "password2", "email", "role", "first_name", "last_name"),
        }),
    )

    readonly_fields = ("last_login", "date_joined")

    def full_name_display(self, obj):
        full_name = obj.get_full_name()
        if full_name.strip():
            return format_html('<strong style="color: #1A73E8;">{}</strong>', full_name)
        return mark_safe('<span style="color: #9AA0A6; font-style: italic;">No name</span>')
    full_name_display.short_description = "Name"

    def role_badge(self, obj):
        if not obj.role:
            return mark_safe('<span class="status-badge status-neutral">No role</span>')
        return format_html(
            '<span class="status-badge" style="background-color: {}; color: white;">{}</span>',
            ROLE_COLORS.get(obj.role.name, "#5F6368"), obj.role.label
        )
    role_badge.short_description = "Role"

    def status_badge(self, obj):
        if obj.is_superuser:
            return mark_safe('<span class="status-badge" style="background-color: #9334E6; color: white;">Superuser</span>')
        elif not obj.is_active:
            return mark_safe('<span class="status-badge status-critical">Inactive</span>')
        elif obj.is_staff:
            return mark_safe('<span class="status-badge status-success">Staff</span>')
        return mark_safe('<span class="status-badge status-info">Active</span>')
    status_badge.short_description = "Status"

    def last_login_display(self, obj):
        """Last login relative to now."""
        if not obj.last_login:
            return mark_safe('<span style="color: #9AA0A6; font-style: italic;">Never</span>')

        diff = timezone.now() - obj.last_login
        if diff < timedelta(hours=1):
            color, text = "#34A853", "just now"
        elif diff < timedelta(hours=24):
            color, text = "#1A73E8", f"{diff.seconds // 3600}h ago"
        elif diff < timedelta(days=30):
            color, text = "#FBBC05", f"{diff.days} day(s) ago"
        else:
            color, text = "#9AA0A6", obj.last_login.strftime("%Y-%m-%d")

        return format_html('<span style="color: {};">{}</span>', color, text)
    last_login_display.short_description = "Last login"


# ============================================================================
# AuditLog Admin (read-only)
# ============================================================================
@admin.register(AuditLog, site=clinic_admin_site)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("id", "timestamp", "user_display", "role_name", "action", "patient_id")
    list_filter = ("action", "role_name", "timestamp")
    search_fields = ("user__username", "action", "patient_id")
    ordering = ("-timestamp", "-id")
    list_per_page = 100
    date_hierarchy = "timestamp"

    readonly_fields = ("id", "user", "role_name", "action", "patient_id", "timestamp", "meta")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser

    def user_display(self, obj):
        if obj.user:
            return obj.user.username
        return mark_safe('<span style="color: #9AA0A6; font-style: italic;">System</span>')
    user_display.short_description = "User"
