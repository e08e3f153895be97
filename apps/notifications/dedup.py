"""
Deduplicação de notificações pelo histórico de envios.
"""

import logging
from datetime import timedelta

from django.db import DatabaseError
from django.utils import timezone

from apps.notifications.models import NotificationLog, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24

# Janela (horas) em que um segundo envio do mesmo tipo é bloqueado
DEDUP_WINDOWS = {
    NotificationType.PAYMENT_RECEIVED: 1,
    NotificationType.WELCOME: 168,
    NotificationType.PAYMENT_REMINDER: 24,
    NotificationType.PAYMENT_OVERDUE: 24,
}


def should_send_notification(user_id, notification_type: str, window_hours: int = None) -> bool:
    """
    False se já houve envio bem-sucedido do mesmo tipo dentro da janela.
    Em erro de banco, libera o envio.
    """
    if window_hours is None:
        window_hours = DEDUP_WINDOWS.get(notification_type, DEFAULT_WINDOW_HOURS)

    since = timezone.now() - timedelta(hours=window_hours)
    try:
        already_sent = NotificationLog.objects.filter(
            user_id=user_id,
            notification_type=notification_type,
            status=NotificationLog.Status.SENT,
            created_at__gte=since,
        ).exists()
    except DatabaseError as e:
        logger.warning("[Notificação] Falha na deduplicação, enviando mesmo assim: %s", e)
        return True

    if already_sent:
        logger.info(
            "[Notificação] %s já enviado ao usuário %s nas últimas %sh",
            notification_type,
            user_id,
            window_hours,
        )
    return not already_sent
