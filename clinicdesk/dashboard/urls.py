"""
Dashboard URL Configuration

Prefix: /api/dashboard/
"""
from django.urls import path

from .views import (
    BillingDashboardView,
    DashboardOverviewView,
    FinancialDashboardView,
    PrescriptionDashboardView,
)

app_name = 'dashboard'

urlpatterns = [
    path('', DashboardOverviewView.as_view(), name='overview'),
    path('billing/', BillingDashboardView.as_view(), name='billing'),
    path('financial/', FinancialDashboardView.as_view(), name='financial'),
    path('prescriptions/', PrescriptionDashboardView.as_view(), name='prescriptions'),
]
