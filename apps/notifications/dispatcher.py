"""
Dispatcher de regras: um evento de negócio -> zero ou mais regras configuradas.

Usado pelo worker da fila e pelos jobs agendados (boas-vindas, vencimento e atraso).
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.utils.html import linebreaks

from apps.notifications.events import UnknownEventError, parse_event
from apps.notifications.models import NotificationRule
from apps.notifications.services import NotificationService
from apps.notifications.templating import process_template
from apps.tenants.models import CompanySettings

logger = logging.getLogger(__name__)


def _load_user(user_id):
    User = get_user_model()
    try:
        return User.objects.select_related("company").filter(pk=user_id).first()
    except (ValueError, ValidationError):
        return None


def active_rules(company_id, event_trigger: str) -> list:
    return list(
        NotificationRule.objects.filter(
            company_id=company_id,
            event_trigger=event_trigger,
            is_active=True,
        )
    )


def apply_rule(rule, user, event, service: NotificationService = None) -> dict:
    """
    Renderiza a mensagem da regra e envia pelos canais marcados.
    Canal não marcado ou sem destino fica como None no resultado.
    """
    service = service or NotificationService(user.company)
    variables = {
        "name": user.display_name,
        "church_name": user.company.name,
        **event.variables(),
        "user_name": (user.email or "").split("@")[0],
    }

    message = process_template(rule.message_template, variables)
    outcome = {"rule_id": str(rule.id), "whatsapp": None, "email": None}

    if rule.send_via_whatsapp and user.phone:
        outcome["whatsapp"] = service.deliver_whatsapp(user.id, event.event_type, user.phone, message)

    if rule.send_via_email and user.email:
        outcome["email"] = service.deliver_email(
            user.id,
            event.event_type,
            user.email,
            subject=process_template(rule.name, variables),
            html=linebreaks(message, autoescape=True),
            text=message,
        )

    return outcome


def process_notification_event(event_type: str, data: dict) -> dict:
    """
    Processa um evento da fila. Eventos inválidos ou sem destinatário são
    descartados (com log), nunca reenfileirados.
    """
    try:
        event = parse_event(event_type, data)
    except (UnknownEventError, ValueError) as e:
        logger.error("[Regras] Evento descartado: %s", e)
        return {"processed": False, "reason": "invalid_event"}

    user = _load_user(event.user_id)
    if not user or not user.company_id:
        logger.warning("[Regras] Usuário %s não encontrado, evento %s descartado", event.user_id, event_type)
        return {"processed": False, "reason": "user_not_found"}

    if not CompanySettings.objects.filter(company_id=user.company_id).exists():
        logger.warning("[Regras] Empresa %s sem configurações, evento %s descartado", user.company_id, event_type)
        return {"processed": False, "reason": "settings_not_found"}

    rules = active_rules(user.company_id, event.event_type)
    if not rules:
        logger.info("[Regras] Nenhuma regra ativa para %s (empresa %s)", event_type, user.company_id)
        return {"processed": True, "rules": 0, "results": []}

    service = NotificationService(user.company)
    results = [apply_rule(rule, user, event, service) for rule in rules]

    logger.info("[Regras] Evento %s processado: %s regra(s)", event_type, len(results))
    return {"processed": True, "rules": len(results), "results": results}
