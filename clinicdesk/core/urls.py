"""Core App URLs - Authentication, Health & Audit.

Prefix: /api/
Routes:
    GET  /api/health/       - Health check (no auth)
    POST /api/auth/login/   - JWT token obtain with user/role info
    POST /api/auth/refresh/ - JWT token refresh
    GET  /api/auth/me/      - Current user info (requires auth)
    GET  /api/audit-logs/   - Audit trail (admin)
"""

from django.urls import path

from clinicdesk.core.views import (
    AuditLogListView,
    LoginView,
    MeView,
    RefreshView,
    health,
)

app_name = 'core'

urlpatterns = [
    path('health/', health, name='health'),

    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/refresh/', RefreshView.as_view(), name='refresh'),
    path('auth/me/', MeView.as_view(), name='me'),

    path('audit-logs/', AuditLogListView.as_view(), name='audit_logs'),
]
