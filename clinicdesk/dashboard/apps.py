"""
Dashboard App Configuration
"""

from django.apps import AppConfig


class DashboardConfig(AppConfig):
    """KPI and chart endpoints; no models of its own."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'clinicdesk.dashboard'
    verbose_name = 'Dashboard'
