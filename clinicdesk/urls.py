"""ClinicDesk URL Configuration.

API routes:
    /api/auth/           - Authentication (core)
    /api/health/         - Health check (core)
    /api/audit-logs/     - Audit trail (core)
    /api/patients/       - Patients (patients)
    /api/invoices/       - Invoices and invoice payments (billing)
    /api/payments/       - Payments and export (billing)
    /api/prescriptions/  - Prescriptions, refills, safety checks (prescriptions)
    /api/dashboard/      - Dashboards (dashboard)
"""

from django.http import HttpResponse
from django.urls import include, path

from clinicdesk.core.admin import clinic_admin_site


def root(request):
    """Plain-text liveness response for load balancers."""
    return HttpResponse("ClinicDesk backend is running.")


urlpatterns = [
    path("", root, name="root"),
    path("admin/", clinic_admin_site.urls),

    path("api/dashboard/", include("clinicdesk.dashboard.urls")),
    path("api/", include("clinicdesk.core.urls")),
    path("api/", include("clinicdesk.patients.urls")),
    path("api/", include("clinicdesk.billing.urls")),
    path("api/", include("clinicdesk.prescriptions.urls")),
]
