"""Billing App URLs.

Prefix: /api/
Routes:
    GET/POST          /api/invoices/                  - List/Create invoices
    GET/PUT/PATCH/DEL /api/invoices/<pk>/             - Retrieve/Update/Delete invoice
    POST              /api/invoices/<pk>/cancel/      - Cancel invoice
    GET/POST          /api/invoices/<pk>/payments/    - Payments of an invoice
    GET               /api/payments/                  - List payments
    GET               /api/payments/export/           - Export payments (?file_format=json|csv)
    GET/PUT/PATCH/DEL /api/payments/<pk>/             - Retrieve/Update/Revert payment
"""

from django.urls import path

from clinicdesk.billing.views import (
    InvoiceCancelView,
    InvoiceDetailView,
    InvoiceListCreateView,
    InvoicePaymentListCreateView,
    PaymentDetailView,
    PaymentExportView,
    PaymentListView,
)

app_name = 'billing'

urlpatterns = [
    path('invoices/', InvoiceListCreateView.as_view(), name='invoice_list'),
    path('invoices/<int:pk>/', InvoiceDetailView.as_view(), name='invoice_detail'),
    path('invoices/<int:pk>/cancel/', InvoiceCancelView.as_view(), name='invoice_cancel'),
    path('invoices/<int:pk>/payments/', InvoicePaymentListCreateView.as_view(), name='invoice_payments'),
    path('payments/', PaymentListView.as_view(), name='payment_list'),
    path('payments/export/', PaymentExportView.as_view(), name='payment_export'),
    path('payments/<int:pk>/', PaymentDetailView.as_view(), name='payment_detail'),
]
