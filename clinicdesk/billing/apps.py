"""
Billing App Configuration
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """App configuration for invoices and payments."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'clinicdesk.billing'
    verbose_name = 'Billing'
