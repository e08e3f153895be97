"""
Jobs periódicos: boas-vindas, lembretes de vencimento e avisos de atraso.

Quando a empresa tem regras ativas para o evento, as mensagens saem das regras
(`days_offset` define a data alvo); sem regra, valem os templates da empresa.
Falha em um membro é registrada e não interrompe o lote.
"""

import logging
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.core.utils import format_brl
from apps.notifications.dedup import should_send_notification
from apps.notifications.dispatcher import active_rules, apply_rule
from apps.notifications.events import PaymentDueReminder, PaymentOverdue, UserRegistered
from apps.notifications.models import EventTrigger, NotificationRule, NotificationType
from apps.notifications.services import NotificationService
from apps.payments.models import Transaction

logger = logging.getLogger(__name__)

REMINDER_DAYS_AHEAD = 3


def _members():
    return get_user_model().objects.select_related("company").filter(is_active=True, company__isnull=False)


def _last_approved_amount(user):
    return (
        Transaction.objects.filter(contributor=user, status=Transaction.Status.APPROVED)
        .order_by("-created_at")
        .values_list("amount", flat=True)
        .first()
    )


def _paid_since(user, day) -> bool:
    return Transaction.objects.filter(
        contributor=user,
        status=Transaction.Status.APPROVED,
        created_at__date__gte=day,
    ).exists()


def _scheduled_rules(event_trigger: str):
    return (
        NotificationRule.objects.select_related("company")
        .filter(event_trigger=event_trigger, is_active=True, company__is_active=True)
        .order_by("company_id", "days_offset")
    )


# ==========================================================
# BOAS-VINDAS
# ==========================================================


def _send_welcome(user) -> None:
    rules = active_rules(user.company_id, EventTrigger.USER_REGISTERED)
    service = NotificationService(user.company)

    if not rules:
        service.send_welcome(
            user.id,
            user.display_name,
            user.company.name,
            phone=user.phone or None,
            email=user.email or None,
        )
        return

    event = UserRegistered(user_id=str(user.id), name=user.display_name, church_name=user.company.name)
    for rule in rules:
        apply_rule(rule, user, event, service)


def process_welcome_notifications() -> int:
    """Boas-vindas para membros cadastrados nas últimas 24h. Retorna quantos foram processados."""
    User = get_user_model()
    since = timezone.now() - timedelta(hours=24)
    users = _members().filter(created_at__gte=since, welcome_sent=False)

    processed = 0
    for user in users:
        try:
            if not should_send_notification(user.id, NotificationType.WELCOME):
                # Já recebeu: só falta marcar
                User.objects.filter(pk=user.pk).update(welcome_sent=True)
                continue
            _send_welcome(user)
        except Exception:
            # Sem marcar: tenta de novo na próxima execução
            logger.exception("[Notificação] Falha nas boas-vindas do usuário %s", user.id)
            continue

        User.objects.filter(pk=user.pk).update(welcome_sent=True)
        processed += 1

    logger.info("[Notificação] Boas-vindas processadas: %s", processed)
    return processed


# ==========================================================
# VENCIMENTO E ATRASO
# ==========================================================


def _run_rule(rule, event_cls, due_date, skip_if_paid: bool = False) -> int:
    """Aplica a regra aos membros da empresa cujo dia do dízimo é `due_date`."""
    users = _members().filter(company_id=rule.company_id, tithe_day=due_date.day)

    service = None
    sent = 0
    for user in users:
        try:
            if skip_if_paid and _paid_since(user, due_date):
                continue

            amount = _last_approved_amount(user)
            if amount is None:
                continue

            if not should_send_notification(user.id, event_cls.event_type):
                continue

            event = event_cls(
                user_id=str(user.id),
                amount=format_brl(amount),
                due_date=due_date.strftime("%d/%m/%Y"),
            )
            service = service or NotificationService(rule.company)
            outcome = apply_rule(rule, user, event, service)
        except Exception:
            logger.exception("[Regras] Falha na regra %s para o usuário %s", rule.id, user.id)
            continue

        if outcome["whatsapp"] or outcome["email"]:
            sent += 1

    return sent


def _default_reminders(due_date, exclude_companies) -> int:
    users = _members().filter(tithe_day=due_date.day).exclude(company_id__in=exclude_companies)

    sent = 0
    for user in users:
        try:
            amount = _last_approved_amount(user)
            if amount is None:
                continue

            if not should_send_notification(user.id, NotificationType.PAYMENT_REMINDER):
                continue

            NotificationService(user.company).send_payment_reminder(
                user.id,
                user.display_name,
                format_brl(amount),
                due_date.strftime("%d/%m/%Y"),
                phone=user.phone or None,
                email=user.email or None,
            )
        except Exception:
            logger.exception("[Notificação] Falha no lembrete do usuário %s", user.id)
            continue
        sent += 1

    return sent


def process_payment_reminders(today=None, days_ahead: int = REMINDER_DAYS_AHEAD) -> int:
    """
    Lembretes de vencimento.

    Cada regra ativa avisa quem vence daqui a `days_offset` dias. Empresas sem
    regra recebem o lembrete do template `days_ahead` dias antes. O valor é o da
    última contribuição aprovada; sem ela, não há lembrete.
    """
    today = today or timezone.localdate()

    sent = 0
    companies_with_rules = set()
    for rule in _scheduled_rules(EventTrigger.PAYMENT_DUE_REMINDER):
        companies_with_rules.add(rule.company_id)
        sent += _run_rule(rule, PaymentDueReminder, today + timedelta(days=rule.days_offset))

    sent += _default_reminders(today + timedelta(days=days_ahead), companies_with_rules)

    logger.info("[Notificação] Lembretes de dízimo processados: %s", sent)
    return sent


def process_overdue_notifications(today=None) -> int:
    """
    Avisos de atraso: cada regra ativa avisa quem venceu há `days_offset` dias
    e não tem contribuição aprovada desde o vencimento.
    """
    today = today or timezone.localdate()

    sent = 0
    for rule in _scheduled_rules(EventTrigger.PAYMENT_OVERDUE):
        sent += _run_rule(rule, PaymentOverdue, today - timedelta(days=rule.days_offset), skip_if_paid=True)

    logger.info("[Notificação] Avisos de atraso processados: %s", sent)
    return sent
