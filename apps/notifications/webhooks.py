"""
Webhook do Amazon SNS para eventos do SES (bounce e reclamação).

Bounce permanente e reclamação colocam o destinatário na lista de supressão
da empresa. Todo evento recebido fica registrado no log de notificações.
"""

import json
import logging

import requests
from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from sns_message_validator import (
    InvalidCertURLException,
    InvalidMessageTypeException,
    InvalidSignatureVersionException,
    SignatureVerificationFailureException,
    SNSMessageValidator,
)

from apps.notifications.mail.suppression import normalize_email, register_permanent_failure
from apps.notifications.models import Channel, EmailBlacklist, NotificationLog
from apps.tenants.models import Company

logger = logging.getLogger(__name__)

SUBSCRIBE_TIMEOUT = 5

SNS_BOUNCE = "sns_bounce"
SNS_COMPLAINT = "sns_complaint"

sns_message_validator = SNSMessageValidator()


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": message}, status=status)


def _record(company, notification_type, recipient, subject, payload, error_message, error_code):
    NotificationLog.record(
        company_id=company.id,
        user_id=None,
        notification_type=notification_type,
        channel=Channel.EMAIL,
        success=False,
        recipient=recipient,
        subject=subject,
        message_content=json.dumps(payload, ensure_ascii=False),
        error_message=error_message,
        error_code=error_code,
    )


def handle_bounce(company, bounce: dict, message_id: str) -> None:
    """Só bounce permanente suprime o e-mail; os demais ficam apenas no log."""
    bounce_type = bounce.get("bounceType", "")
    sub_type = bounce.get("bounceSubType", "")

    for recipient in bounce.get("bouncedRecipients", []):
        email = normalize_email(recipient.get("emailAddress"))
        if not email:
            continue
        error_message = recipient.get("diagnosticCode") or sub_type

        with transaction.atomic():
            if bounce_type == "Permanent":
                register_permanent_failure(
                    company.id,
                    email,
                    sub_type,
                    recipient.get("diagnosticCode") or f"Permanent bounce: {sub_type}",
                    reason=EmailBlacklist.Reason.BOUNCE,
                )
            _record(
                company,
                SNS_BOUNCE,
                email,
                f"Bounce: {bounce_type}",
                {"bounce": bounce, "messageId": message_id},
                error_message,
                sub_type,
            )

    logger.info("[SNS] Bounce %s processado (%s)", bounce_type, message_id)


def handle_complaint(company, complaint: dict, message_id: str) -> None:
    feedback_type = complaint.get("complaintFeedbackType") or ""
    error_code = feedback_type or "abuse"

    for recipient in complaint.get("complainedRecipients", []):
        email = normalize_email(recipient.get("emailAddress"))
        if not email:
            continue

        with transaction.atomic():
            register_permanent_failure(
                company.id,
                email,
                error_code,
                f"User marked as spam: {feedback_type or 'unknown'}",
                reason=EmailBlacklist.Reason.COMPLAINT,
            )
            _record(
                company,
                SNS_COMPLAINT,
                email,
                "Complaint received",
                {"complaint": complaint, "messageId": message_id},
                feedback_type or "User complaint",
                error_code,
            )

    logger.info("[SNS] Reclamação processada (%s)", message_id)


def _confirm_subscription(payload: dict) -> JsonResponse:
    subscribe_url = payload.get("SubscribeURL")
    if not subscribe_url:
        return _error("No SubscribeURL", 400)

    try:
        requests.get(subscribe_url, timeout=SUBSCRIBE_TIMEOUT)
    except requests.Timeout:
        logger.error("[SNS] Timeout ao confirmar subscrição de %s", payload.get("TopicArn"))
        return _error("Timeout ao confirmar subscrição SNS", 504)
    except requests.RequestException as e:
        logger.error("[SNS] Erro ao confirmar subscrição de %s: %s", payload.get("TopicArn"), e)
        return _error("Falha ao confirmar subscrição SNS", 502)

    logger.info("[SNS] Subscrição confirmada: %s", payload.get("TopicArn"))
    return JsonResponse({"message": "Subscription confirmed"})


@csrf_exempt
@require_POST
def sns_webhook(request, company_slug):
    """
    Recebe mensagens do SNS. A assinatura é sempre validada antes de qualquer
    efeito colateral; mensagem com assinatura inválida recebe 403.
    """
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError):
        return _error("JSON inválido", 400)
    if not isinstance(payload, dict):
        return _error("JSON inválido", 400)

    try:
        sns_message_validator.validate_message(message=payload)
    except (
        InvalidMessageTypeException,
        InvalidSignatureVersionException,
        SignatureVerificationFailureException,
        InvalidCertURLException,
    ) as e:
        logger.warning("[SNS] Assinatura inválida (%s): %s", e.__class__.__name__, payload.get("MessageId"))
        return _error("Assinatura SNS inválida", 403)
    except Exception:
        logger.exception("[SNS] Erro ao validar mensagem %s", payload.get("MessageId"))
        return _error("Assinatura SNS inválida", 403)

    company = Company.objects.filter(slug=company_slug, is_active=True).first()
    if company is None:
        return _error("Empresa não encontrada", 404)

    message_type = payload.get("Type")

    if message_type == "SubscriptionConfirmation":
        return _confirm_subscription(payload)

    if message_type == "UnsubscribeConfirmation":
        logger.info("[SNS] Subscrição removida: %s", payload.get("TopicArn"))
        return JsonResponse({"message": "Unsubscribed"})

    if message_type == "Notification":
        try:
            message = json.loads(payload.get("Message") or "")
        except ValueError:
            return _error("Message inválida", 400)
        if not isinstance(message, dict):
            return _error("Message inválida", 400)

        notification_type = message.get("notificationType")
        message_id = (message.get("mail") or {}).get("messageId", "")

        if notification_type == "Bounce" and message.get("bounce"):
            handle_bounce(company, message["bounce"], message_id)
        elif notification_type == "Complaint" and message.get("complaint"):
            handle_complaint(company, message["complaint"], message_id)
        else:
            logger.info("[SNS] Notificação %s ignorada (%s)", notification_type, message_id)

        return JsonResponse({"message": "Processed"})

    return _error("Unknown message type", 400)
