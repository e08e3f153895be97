"""
Produtor da fila de notificações.

O envio para a fila é "fire-and-forget": sem broker configurado, ou com o
broker inacessível na primeira conexão, o produtor fica desabilitado e os
eventos são descartados com log, sem derrubar o processo que os gerou.
"""

import logging

from django.conf import settings

from apps.notifications.events import UnknownEventError, parse_event

logger = logging.getLogger(__name__)

QUEUE_NAME = "notifications"

_producer = None
_initialized = False


class NotificationProducer:
    def __init__(self, task):
        self.task = task

    def enqueue(self, event_type: str, data: dict) -> None:
        self.task.apply_async(
            kwargs={"event_type": event_type, "data": data},
            queue=QUEUE_NAME,
            ignore_result=True,
        )


def _connect():
    if not getattr(settings, "CELERY_BROKER_URL", ""):
        logger.warning("[Fila] CELERY_BROKER_URL não definido, notificações desabilitadas")
        return None

    from celery import current_app

    try:
        with current_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
    except Exception as e:
        logger.error("[Fila] Broker inacessível, notificações desabilitadas: %s", e)
        return None

    from apps.notifications.tasks import process_notification_event_task

    return NotificationProducer(process_notification_event_task)


def get_notification_producer():
    """Produtor (ou None), criado na primeira chamada."""
    global _producer, _initialized
    if not _initialized:
        _producer = _connect()
        _initialized = True
    return _producer


def reset_notification_producer():
    global _producer, _initialized
    _producer = None
    _initialized = False


def enqueue_notification(event_type: str, data: dict) -> bool:
    """
    Enfileira um evento. Retorna False quando o evento não foi enfileirado
    (payload inválido, fila desabilitada ou falha de publicação).
    """
    try:
        event = parse_event(event_type, data)
    except (UnknownEventError, ValueError) as e:
        logger.error("[Fila] Evento inválido não enfileirado: %s", e)
        return False

    producer = get_notification_producer()
    if producer is None:
        logger.info("[Fila] Fila desabilitada, evento %s descartado", event_type)
        return False

    try:
        producer.enqueue(event.event_type, event.to_payload())
    except Exception:
        logger.exception("[Fila] Falha ao publicar evento %s", event_type)
        return False

    logger.info("[Fila] Evento %s enfileirado para o usuário %s", event_type, event.user_id)
    return True
