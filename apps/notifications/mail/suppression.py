"""
Lista de supressão de e-mails (bounce, reclamação e rejeição permanente).
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.notifications.models import EmailBlacklist

logger = logging.getLogger(__name__)

PERMANENT_ERROR_CODES = frozenset(
    {
        "MessageRejected",
        "MailFromDomainNotVerifiedException",
        "InvalidParameterValue",
        "AccountSendingPausedException",
    }
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_permanent_failure(error_code: str) -> bool:
    if not error_code:
        return False
    return error_code in PERMANENT_ERROR_CODES or "Bounce" in error_code or "Complaint" in error_code


def classify_reason(error_code: str) -> str:
    if "Complaint" in (error_code or ""):
        return EmailBlacklist.Reason.COMPLAINT
    if "Bounce" in (error_code or ""):
        return EmailBlacklist.Reason.BOUNCE
    return EmailBlacklist.Reason.ERROR


def is_email_blacklisted(company_id, email: str) -> bool:
    return EmailBlacklist.objects.filter(
        company_id=company_id, email=normalize_email(email), is_active=True
    ).exists()


def register_permanent_failure(company_id, email: str, error_code: str, error_message: str = "", reason: str = None):
    """
    Insere o e-mail na lista ou atualiza a entrada existente (reativando-a).
    Sem `reason`, o motivo vem do código do erro.
    """
    email = normalize_email(email)
    fields = {
        "reason": reason or classify_reason(error_code),
        "error_code": (error_code or "")[:100],
        "error_message": (error_message or "")[:1000],
    }

    updated = EmailBlacklist.objects.filter(company_id=company_id, email=email).update(
        attempt_count=F("attempt_count") + 1,
        last_attempt_at=timezone.now(),
        is_active=True,
        **fields,
    )
    if updated:
        logger.warning("[Email] Falha permanente repetida para %s (%s)", email, error_code)
        return

    try:
        with transaction.atomic():
            EmailBlacklist.objects.create(company_id=company_id, email=email, **fields)
    except IntegrityError:
        # Outro worker inseriu ao mesmo tempo
        EmailBlacklist.objects.filter(company_id=company_id, email=email).update(
            attempt_count=F("attempt_count") + 1,
            last_attempt_at=timezone.now(),
            is_active=True,
            **fields,
        )
    logger.warning("[Email] %s adicionado à lista de supressão (%s)", email, error_code)
