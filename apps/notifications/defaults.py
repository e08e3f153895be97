"""
Templates e regras padrão.

DEFAULT_TEMPLATES define o fallback por tipo de notificação. Tipos sem entrada
(boas-vindas, pagamento recebido) só são enviados com template personalizado.
"""

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.notifications.models import EventTrigger, MessageTemplate, NotificationRule, NotificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateSet:
    whatsapp: str = ""
    email_subject: str = ""
    email_html: str = ""

    @property
    def has_whatsapp(self) -> bool:
        return bool(self.whatsapp)

    @property
    def has_email(self) -> bool:
        return bool(self.email_subject and self.email_html)

    @classmethod
    def from_model(cls, template: MessageTemplate) -> "TemplateSet":
        return cls(
            whatsapp=template.whatsapp_template,
            email_subject=template.email_subject_template,
            email_html=template.email_html_template,
        )


DEFAULT_TEMPLATES = {
    NotificationType.PAYMENT_REMINDER: TemplateSet(
        whatsapp=(
            "💰 Olá {{name}}!\n\n"
            "Lembramos que seu dízimo de R$ {{amount}} vence em {{due_date}}.\n\n"
            "{{#if payment_link}}Pague pelo link: {{payment_link}}\n\n{{/if}}"
            "Obrigado pela sua fidelidade! 🙏"
        ),
        email_subject="Lembrete de Dízimo - vence em {{due_date}}",
        email_html=(
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #4a5568;">💰 Lembrete de Dízimo</h2>'
            "<p>Olá {{name}},</p>"
            "<p>Lembramos que seu dízimo de <strong>R$ {{amount}}</strong> vence em "
            "<strong>{{due_date}}</strong>.</p>"
            "{{#if payment_link}}"
            '<p style="text-align: center; margin: 20px 0;"><a href="{{payment_link}}" '
            'style="background: #4299e1; color: white; padding: 12px 24px; '
            'text-decoration: none; border-radius: 6px;">Pagar Agora</a></p>'
            "{{/if}}"
            "<p>Obrigado pela sua fidelidade e contribuição! 🙏</p>"
            "</div>"
        ),
    ),
    NotificationType.PAYMENT_OVERDUE: TemplateSet(
        whatsapp=(
            "Olá {{name}}! Seu dízimo de R$ {{amount}} está em atraso desde {{due_date}}."
            "{{#if payment_link}}\n\nPague pelo link: {{payment_link}}{{/if}}"
        ),
        email_subject="Pagamento em atraso desde {{due_date}}",
        email_html=(
            "<p>Olá {{name}},</p>"
            "<p>Seu dízimo de <strong>R$ {{amount}}</strong> está em atraso desde "
            "<strong>{{due_date}}</strong>.</p>"
            '{{#if payment_link}}<p><a href="{{payment_link}}">Pagar Agora</a></p>{{/if}}'
        ),
    ),
}

TEMPLATE_NAMES = {
    NotificationType.PAYMENT_REMINDER: "Lembrete de Pagamento",
    NotificationType.PAYMENT_OVERDUE: "Pagamento em Atraso",
}

DEFAULT_RULES = (
    {
        "name": "Lembrete 5 dias antes",
        "event_trigger": EventTrigger.PAYMENT_DUE_REMINDER,
        "days_offset": 5,
        "template_type": NotificationType.PAYMENT_REMINDER,
    },
    {
        "name": "Lembrete no dia",
        "event_trigger": EventTrigger.PAYMENT_DUE_REMINDER,
        "days_offset": 0,
        "template_type": NotificationType.PAYMENT_REMINDER,
    },
    {
        "name": "Aviso atraso 1 dia",
        "event_trigger": EventTrigger.PAYMENT_OVERDUE,
        "days_offset": 1,
        "template_type": NotificationType.PAYMENT_OVERDUE,
    },
)


@transaction.atomic
def bootstrap_notification_defaults(company) -> dict:
    """
    Cria os templates e regras padrão da empresa. Idempotente.
    Retorna quantos de cada foram criados.
    """
    created = {"templates": 0, "rules": 0}

    for template_type, template_set in DEFAULT_TEMPLATES.items():
        if MessageTemplate.objects.filter(company=company, template_type=template_type).exists():
            continue
        MessageTemplate.objects.create(
            company=company,
            template_type=template_type,
            name=TEMPLATE_NAMES[template_type],
            whatsapp_template=template_set.whatsapp,
            email_subject_template=template_set.email_subject,
            email_html_template=template_set.email_html,
            is_active=True,
        )
        created["templates"] += 1

    for rule in DEFAULT_RULES:
        exists = NotificationRule.objects.filter(
            company=company,
            event_trigger=rule["event_trigger"],
            days_offset=rule["days_offset"],
        ).exists()
        if exists:
            continue
        NotificationRule.objects.create(
            company=company,
            name=rule["name"],
            event_trigger=rule["event_trigger"],
            days_offset=rule["days_offset"],
            message_template=DEFAULT_TEMPLATES[rule["template_type"]].whatsapp,
            send_via_email=True,
            send_via_whatsapp=True,
            is_active=True,
        )
        created["rules"] += 1

    logger.info(
        "[Notificação] Padrões criados para %s: %s template(s), %s regra(s)",
        company,
        created["templates"],
        created["rules"],
    )
    return created
