"""
Notification Service - um método por tipo de notificação.

Cada canal (WhatsApp e e-mail) é resolvido de forma independente: a falha
de um nunca impede o outro, e cada tentativa gera um NotificationLog.
Nenhum método levanta exceção.
"""

import logging

from apps.notifications.defaults import DEFAULT_TEMPLATES, TemplateSet
from apps.notifications.mail.channel import EmailChannel
from apps.notifications.models import Channel, MessageTemplate, NotificationLog, NotificationType
from apps.notifications.templating import process_template
from apps.notifications.whatsapp.channel import WhatsAppChannel

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, company, whatsapp: WhatsAppChannel = None, email: EmailChannel = None):
        self.company = company
        self.whatsapp = whatsapp or WhatsAppChannel.for_company(company.id)
        self.email = email or EmailChannel.for_company(company.id)

    # ==========================================================
    # OPERAÇÕES
    # ==========================================================

    def send_welcome(self, user_id, name, church_name, phone=None, email=None) -> dict:
        variables = {"name": name, "church_name": church_name}
        return self._send(NotificationType.WELCOME, user_id, variables, phone, email)

    def send_payment_reminder(
        self, user_id, name, amount, due_date, phone=None, email=None, payment_link=None
    ) -> dict:
        variables = {
            "name": name,
            "amount": amount,
            "due_date": due_date,
            "payment_link": payment_link,
        }
        return self._send(NotificationType.PAYMENT_REMINDER, user_id, variables, phone, email)

    def send_payment_overdue(
        self, user_id, name, amount, due_date, phone=None, email=None, payment_link=None
    ) -> dict:
        variables = {
            "name": name,
            "amount": amount,
            "due_date": due_date,
            "payment_link": payment_link,
        }
        return self._send(NotificationType.PAYMENT_OVERDUE, user_id, variables, phone, email)

    def send_payment_received(self, user_id, name, amount, paid_at, phone=None, email=None) -> dict:
        variables = {"name": name, "amount": amount, "paid_at": paid_at}
        return self._send(NotificationType.PAYMENT_RECEIVED, user_id, variables, phone, email)

    # ==========================================================
    # ENTREGA POR CANAL (também usada pelo dispatcher de regras)
    # ==========================================================

    def deliver_whatsapp(self, user_id, notification_type: str, phone: str, message: str) -> bool:
        try:
            result = self.whatsapp.send(phone, message)
        except Exception as e:
            logger.exception("[Notificação] Erro inesperado no WhatsApp (%s)", notification_type)
            result = {"success": False, "error": str(e), "error_code": ""}

        NotificationLog.record(
            company_id=self.company.id,
            user_id=user_id,
            notification_type=notification_type,
            channel=Channel.WHATSAPP,
            success=result.get("success", False),
            recipient=phone,
            message_content=message,
            error_message=result.get("error", ""),
            error_code=result.get("error_code", ""),
        )
        return bool(result.get("success"))

    def deliver_email(
        self, user_id, notification_type: str, email: str, subject: str, html: str, text: str = None
    ) -> bool:
        try:
            result = self.email.send(email, subject, html, text)
        except Exception as e:
            logger.exception("[Notificação] Erro inesperado no e-mail (%s)", notification_type)
            result = {"success": False, "error": str(e), "error_code": ""}

        NotificationLog.record(
            company_id=self.company.id,
            user_id=user_id,
            notification_type=notification_type,
            channel=Channel.EMAIL,
            success=result.get("success", False),
            recipient=email,
            subject=subject,
            message_content=html,
            error_message=result.get("error", ""),
            error_code=result.get("error_code", ""),
        )
        return bool(result.get("success"))

    # ==========================================================
    # INTERNOS
    # ==========================================================

    def get_template(self, notification_type: str) -> TemplateSet | None:
        """Template personalizado ativo da empresa, senão o padrão do tipo (se houver)."""
        try:
            custom = (
                MessageTemplate.objects.filter(
                    company_id=self.company.id,
                    template_type=notification_type,
                    is_active=True,
                )
                .order_by("-updated_at")
                .first()
            )
        except Exception:
            logger.exception("[Notificação] Erro ao buscar template %s", notification_type)
            custom = None

        if custom:
            return TemplateSet.from_model(custom)
        return DEFAULT_TEMPLATES.get(notification_type)

    def _send(self, notification_type, user_id, variables, phone, email) -> dict:
        results = {"whatsapp": False, "email": False}
        template = self.get_template(notification_type)

        if not template:
            logger.info(
                "[Notificação] Sem template para %s (empresa %s), envio ignorado",
                notification_type,
                self.company.id,
            )
            return results

        if phone and template.has_whatsapp:
            message = process_template(template.whatsapp, variables)
            results["whatsapp"] = self.deliver_whatsapp(user_id, notification_type, phone, message)

        if email and template.has_email:
            subject = process_template(template.email_subject, variables)
            html = process_template(template.email_html, variables)
            results["email"] = self.deliver_email(user_id, notification_type, email, subject, html)

        return results
