"""Patients App URLs.

Prefix: /api/
Routes:
    GET/POST          /api/patients/               - List/Create patients
    GET/PUT/PATCH/DEL /api/patients/<pk>/          - Retrieve/Update/Delete patient
    GET               /api/patients/<pk>/summary/  - Patient profile with billing/prescriptions
"""

from django.urls import path

from clinicdesk.patients.views import (
    PatientDetailView,
    PatientListCreateView,
    PatientSummaryView,
)

app_name = 'patients'

urlpatterns = [
    path('patients/', PatientListCreateView.as_view(), name='list'),
    path('patients/<int:pk>/', PatientDetailView.as_view(), name='detail'),
    path('patients/<int:pk>/summary/', PatientSummaryView.as_view(), name='summary'),
]
