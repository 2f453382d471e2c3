"""
Prescriptions App Configuration
"""

from django.apps import AppConfig


class PrescriptionsConfig(AppConfig):
    """App configuration for prescriptions and refills."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'clinicdesk.prescriptions'
    verbose_name = 'Prescriptions'
