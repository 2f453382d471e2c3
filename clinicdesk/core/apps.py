"""
Core App Configuration
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """App configuration for users, roles and audit logging."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'clinicdesk.core'
    verbose_name = 'Core (Users & Roles)'
