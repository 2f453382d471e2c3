import logging

from celery import shared_task

from clinicdesk.billing.services import mark_overdue_invoices

logger = logging.getLogger(__name__)


@shared_task(name='clinicdesk.billing.tasks.mark_overdue_invoices_task')
def mark_overdue_invoices_task():
    """Periodic task (see CELERY_BEAT_SCHEDULE): flag invoices past due."""
    count = mark_overdue_invoices()
    logger.info('mark_overdue_invoices_task: %s invoice(s) updated', count)
    return count
