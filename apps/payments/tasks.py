"""
Celery tasks do app payments.
"""

import logging

from celery import shared_task

from apps.payments.services import expire_stale_pix_transactions as expire_stale_pix

logger = logging.getLogger(__name__)


@shared_task(name="apps.payments.tasks.expire_stale_pix_transactions", ignore_result=True)
def expire_stale_pix_transactions():
    """Beat: recusa PIX pendentes há mais de 15 minutos."""
    return expire_stale_pix()
