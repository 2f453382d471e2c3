import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def log_patient_action(user, action, patient_id=None, meta=None):
    """Write a patient-access action to the audit log.

    Audit failures must never break the request that triggered them, so
    errors are logged and swallowed here.
    """

    role_name = ''
    role = getattr(user, 'role', None)
    if role is not None:
        role_name = getattr(role, 'name', '') or ''

    try:
        AuditLog.objects.using('default').create(
            user=user if getattr(user, 'is_authenticated', False) else None,
            role_name=role_name,
            action=action,
            patient_id=patient_id,
            meta=meta,
        )
    except Exception:
        logger.exception('AuditLog write failed (action=%s, patient_id=%s)', action, patient_id)


def role_name_of(user) -> str | None:
    """Role name of a request user, or None for anonymous/role-less users."""
    role = getattr(user, 'role', None)
    return getattr(role, 'name', None)
