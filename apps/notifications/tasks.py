"""
Tasks Celery do app notifications.

- process_notification_event_task: worker da fila "notifications"
- process_welcome_notifications / process_payment_reminders / process_overdue_notifications: jobs do Celery Beat
"""

import logging

import requests
from celery import shared_task
from django.db import OperationalError

from apps.notifications import reminders
from apps.notifications.dispatcher import process_notification_event

logger = logging.getLogger(__name__)

# Configuração para tasks de mensageria
TASK_CONFIG = {
    "bind": True,
    "autoretry_for": (
        requests.exceptions.RequestException,
        OperationalError,
    ),  # Retenta apenas erros de rede/banco
    "retry_kwargs": {"max_retries": 5, "countdown": 10},
    "retry_backoff": True,
    "retry_backoff_max": 120,
    "retry_jitter": True,
    "acks_late": True,  # A task só sai da fila depois de processada
    "reject_on_worker_lost": True,
    "queue": "notifications",
}


@shared_task(name="apps.notifications.tasks.process_notification_event", **TASK_CONFIG)
def process_notification_event_task(self, event_type: str, data: dict):
    logger.info("[Fila] Job %s recebido: %s", self.request.id, event_type)
    try:
        result = process_notification_event(event_type, data)
    except Exception:
        logger.exception("[Fila] Job %s falhou (%s)", self.request.id, event_type)
        raise

    logger.info("[Fila] Job %s concluído", self.request.id)
    return result


@shared_task(name="apps.notifications.tasks.process_welcome_notifications", ignore_result=True)
def process_welcome_notifications():
    return reminders.process_welcome_notifications()


@shared_task(name="apps.notifications.tasks.process_payment_reminders", ignore_result=True)
def process_payment_reminders():
    return reminders.process_payment_reminders()


@shared_task(name="apps.notifications.tasks.process_overdue_notifications", ignore_result=True)
def process_overdue_notifications():
    return reminders.process_overdue_notifications()
