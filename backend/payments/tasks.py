from celery import shared_task

from .services import PaymentReconciliationService


@shared_task
def reconcile_pending_payments(older_than_minutes=None, limit=100):
    """
    Verify pending payments whose webhook never arrived
    Run this task every 15 minutes
    """
    return PaymentReconciliationService.reconcile_pending(
        older_than_minutes=older_than_minutes,
        limit=limit,
    )
