"""Prescriptions App URLs.

Prefix: /api/
Routes:
    GET/POST       /api/prescriptions/                 - List/Create prescriptions
    GET/PUT/PATCH  /api/prescriptions/<pk>/            - Retrieve/Update prescription
    POST           /api/prescriptions/<pk>/status/     - Change status
    GET/POST       /api/prescriptions/<pk>/refills/    - Refill history / record refill
    GET            /api/prescriptions/refills/due/     - Refill schedule (?window=14)
    POST           /api/prescriptions/safety-check/    - Interaction/allergy check
"""

from django.urls import path

from clinicdesk.prescriptions.views import (
    PrescriptionDetailView,
    PrescriptionListCreateView,
    PrescriptionRefillListCreateView,
    PrescriptionStatusView,
    RefillsDueView,
    SafetyCheckView,
)

app_name = 'prescriptions'

urlpatterns = [
    path('prescriptions/', PrescriptionListCreateView.as_view(), name='list'),
    path('prescriptions/refills/due/', RefillsDueView.as_view(), name='refills_due'),
    path('prescriptions/safety-check/', SafetyCheckView.as_view(), name='safety_check'),
    path('prescriptions/<int:pk>/', PrescriptionDetailView.as_view(), name='detail'),
    path('prescriptions/<int:pk>/status/', PrescriptionStatusView.as_view(), name='status'),
    path('prescriptions/<int:pk>/refills/', PrescriptionRefillListCreateView.as_view(), name='refills'),
]
