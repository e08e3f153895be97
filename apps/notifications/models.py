"""
Models do app notifications.

Templates de mensagem, regras de disparo por evento, log de envios
e lista de supressão de e-mails.
"""

import logging

from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel, CompanyModel

logger = logging.getLogger(__name__)


class NotificationType(models.TextChoices):
    WELCOME = "welcome", "Boas-vindas"
    PAYMENT_REMINDER = "payment_reminder", "Lembrete de Pagamento"
    PAYMENT_OVERDUE = "payment_overdue", "Pagamento em Atraso"
    PAYMENT_RECEIVED = "payment_received", "Pagamento Recebido"


class EventTrigger(models.TextChoices):
    USER_REGISTERED = "user_registered", "Cadastro de Membro"
    PAYMENT_RECEIVED = "payment_received", "Pagamento Recebido"
    PAYMENT_DUE_REMINDER = "payment_due_reminder", "Lembrete de Vencimento"
    PAYMENT_OVERDUE = "payment_overdue", "Pagamento em Atraso"


class Channel(models.TextChoices):
    WHATSAPP = "whatsapp", "WhatsApp"
    EMAIL = "email", "E-mail"


class MessageTemplate(CompanyModel):
    """Template personalizado da empresa; sem ele, vale o texto padrão."""

    template_type = models.CharField(
        "Tipo", max_length=30, choices=NotificationType.choices, db_index=True
    )
    name = models.CharField("Nome", max_length=100)

    whatsapp_template = models.TextField("Mensagem WhatsApp", blank=True)
    email_subject_template = models.CharField("Assunto do E-mail", max_length=200, blank=True)
    email_html_template = models.TextField("Corpo do E-mail (HTML)", blank=True)

    is_active = models.BooleanField("Ativo", default=True)

    class Meta:
        verbose_name = "Template de Mensagem"
        verbose_name_plural = "Templates de Mensagem"
        ordering = ["template_type", "-updated_at"]
        indexes = [
            models.Index(fields=["company", "template_type", "is_active"], name="notif_template_lookup_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_template_type_display()})"


class NotificationRule(CompanyModel):
    """Regra de disparo: evento + canais + mensagem."""

    name = models.CharField("Nome", max_length=100)
    event_trigger = models.CharField(
        "Evento", max_length=30, choices=EventTrigger.choices, db_index=True
    )
    days_offset = models.IntegerField(
        "Dias de antecedência/atraso",
        default=0,
        help_text="Usado pelos lembretes: dias antes do vencimento ou após o atraso",
    )
    message_template = models.TextField(
        "Mensagem",
        help_text="Variáveis: {{name}}, {{amount}}, {{due_date}}, {{payment_link}}... "
        "Blocos: {{#if payment_link}}...{{/if}}",
    )

    send_via_email = models.BooleanField("Enviar por e-mail", default=True)
    send_via_whatsapp = models.BooleanField("Enviar por WhatsApp", default=False)
    is_active = models.BooleanField("Ativa", default=True)

    class Meta:
        verbose_name = "Regra de Notificação"
        verbose_name_plural = "Regras de Notificação"
        ordering = ["event_trigger", "days_offset"]
        indexes = [
            models.Index(fields=["company", "event_trigger", "is_active"], name="notif_rule_lookup_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_event_trigger_display()})"


class NotificationLog(BaseModel):
    """
    Registro de cada tentativa de envio, por canal.

    Usado para auditoria, diagnóstico de falhas e deduplicação de envios.
    """

    class Status(models.TextChoices):
        SENT = "sent", "Enviado"
        FAILED = "failed", "Falhou"

    company = models.ForeignKey(
        "tenants.Company",
        on_delete=models.CASCADE,
        related_name="notification_logs",
        verbose_name="Empresa",
    )
    user = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notification_logs",
    )

    notification_type = models.CharField(max_length=50, db_index=True)
    channel = models.CharField(max_length=20, choices=Channel.choices)
    status = models.CharField(max_length=20, choices=Status.choices, db_index=True)

    recipient = models.CharField(max_length=254)
    subject = models.CharField(max_length=200, blank=True, default="")
    message_content = models.TextField(blank=True, default="")

    error_message = models.TextField(blank=True, default="")
    error_code = models.CharField(max_length=50, blank=True, default="")

    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "created_at"], name="notif_log_company_idx"),
            models.Index(fields=["user", "notification_type", "status", "created_at"], name="notif_log_dedup_idx"),
        ]
        verbose_name = "Log de Notificação"
        verbose_name_plural = "Logs de Notificações"

    def __str__(self):
        return f"{self.notification_type} - {self.channel} - {self.status}"

    @classmethod
    def record(
        cls,
        *,
        company_id,
        user_id,
        notification_type: str,
        channel: str,
        success: bool,
        recipient: str,
        message_content: str = "",
        subject: str = "",
        error_message: str = "",
        error_code: str = "",
    ):
        """
        Grava uma tentativa de envio. Falha ao gravar não interrompe o envio.
        """
        try:
            return cls.objects.create(
                company_id=company_id,
                user_id=user_id,
                notification_type=notification_type,
                channel=channel,
                status=cls.Status.SENT if success else cls.Status.FAILED,
                recipient=(recipient or "")[:254],
                subject=(subject or "")[:200],
                message_content=message_content or "",
                error_message=error_message or "",
                error_code=str(error_code or "")[:50],
                sent_at=timezone.now() if success else None,
            )
        except Exception:
            logger.exception(
                "[Notificação] Falha ao gravar log (%s/%s)", notification_type, channel
            )
            return None


class EmailBlacklist(CompanyModel):
    """
    E-mails suprimidos após falha permanente (bounce, reclamação, rejeição).
    Um registro por (empresa, e-mail).
    """

    class Reason(models.TextChoices):
        BOUNCE = "bounce", "Bounce"
        COMPLAINT = "complaint", "Reclamação"
        ERROR = "error", "Erro permanente"

    email = models.EmailField("E-mail")
    reason = models.CharField("Motivo", max_length=20, choices=Reason.choices)
    error_code = models.CharField("Código do erro", max_length=100, blank=True, default="")
    error_message = models.TextField("Mensagem do erro", blank=True, default="")

    first_failed_at = models.DateTimeField("Primeira falha", default=timezone.now)
    last_attempt_at = models.DateTimeField("Última tentativa", default=timezone.now)
    attempt_count = models.PositiveIntegerField("Tentativas", default=1)

    is_active = models.BooleanField("Ativo", default=True)

    class Meta:
        verbose_name = "E-mail Bloqueado"
        verbose_name_plural = "E-mails Bloqueados"
        ordering = ["-last_attempt_at"]
        constraints = [
            models.UniqueConstraint(fields=["company", "email"], name="unique_blacklist_company_email"),
        ]

    def __str__(self):
        return f"{self.email} ({self.get_reason_display()})"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)
