import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

NOTIFICATION_TYPES = [
    ("welcome", "Boas-vindas"),
    ("payment_reminder", "Lembrete de Pagamento"),
    ("payment_overdue", "Pagamento em Atraso"),
    ("payment_received", "Pagamento Recebido"),
]

EVENT_TRIGGERS = [
    ("user_registered", "Cadastro de Membro"),
    ("payment_received", "Pagamento Recebido"),
    ("payment_due_reminder", "Lembrete de Vencimento"),
    ("payment_overdue", "Pagamento em Atraso"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="MessageTemplate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "template_type",
                    models.CharField(choices=NOTIFICATION_TYPES, db_index=True, max_length=30, verbose_name="Tipo"),
                ),
                ("name", models.CharField(max_length=100, verbose_name="Nome")),
                ("whatsapp_template", models.TextField(blank=True, verbose_name="Mensagem WhatsApp")),
                (
                    "email_subject_template",
                    models.CharField(blank=True, max_length=200, verbose_name="Assunto do E-mail"),
                ),
                ("email_html_template", models.TextField(blank=True, verbose_name="Corpo do E-mail (HTML)")),
                ("is_active", models.BooleanField(default=True, verbose_name="Ativo")),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="tenants.company",
                        verbose_name="Empresa",
                    ),
                ),
            ],
            options={
                "verbose_name": "Template de Mensagem",
                "verbose_name_plural": "Templates de Mensagem",
                "ordering": ["template_type", "-updated_at"],
                "indexes": [
                    models.Index(fields=["company", "template_type", "is_active"], name="notif_template_lookup_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100, verbose_name="Nome")),
                (
                    "event_trigger",
                    models.CharField(choices=EVENT_TRIGGERS, db_index=True, max_length=30, verbose_name="Evento"),
                ),
                (
                    "days_offset",
                    models.IntegerField(
                        default=0,
                        help_text="Usado pelos lembretes: dias antes do vencimento ou após o atraso",
                        verbose_name="Dias de antecedência/atraso",
                    ),
                ),
                (
                    "message_template",
                    models.TextField(
                        help_text="Variáveis: {{name}}, {{amount}}, {{due_date}}, {{payment_link}}... "
                        "Blocos: {{#if payment_link}}...{{/if}}",
                        verbose_name="Mensagem",
                    ),
                ),
                ("send_via_email", models.BooleanField(default=True, verbose_name="Enviar por e-mail")),
                ("send_via_whatsapp", models.BooleanField(default=False, verbose_name="Enviar por WhatsApp")),
                ("is_active", models.BooleanField(default=True, verbose_name="Ativa")),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="tenants.company",
                        verbose_name="Empresa",
                    ),
                ),
            ],
            options={
                "verbose_name": "Regra de Notificação",
                "verbose_name_plural": "Regras de Notificação",
                "ordering": ["event_trigger", "days_offset"],
                "indexes": [
                    models.Index(fields=["company", "event_trigger", "is_active"], name="notif_rule_lookup_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("notification_type", models.CharField(db_index=True, max_length=50)),
                (
                    "channel",
                    models.CharField(choices=[("whatsapp", "WhatsApp"), ("email", "E-mail")], max_length=20),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("sent", "Enviado"), ("failed", "Falhou")], db_index=True, max_length=20
                    ),
                ),
                ("recipient", models.CharField(max_length=254)),
                ("subject", models.CharField(blank=True, default="", max_length=200)),
                ("message_content", models.TextField(blank=True, default="")),
                ("error_message", models.TextField(blank=True, default="")),
                ("error_code", models.CharField(blank=True, default="", max_length=50)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notification_logs",
                        to="tenants.company",
                        verbose_name="Empresa",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notification_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Log de Notificação",
                "verbose_name_plural": "Logs de Notificações",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="notif_log_company_idx"),
                    models.Index(
                        fields=["user", "notification_type", "status", "created_at"], name="notif_log_dedup_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EmailBlacklist",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("email", models.EmailField(max_length=254, verbose_name="E-mail")),
                (
                    "reason",
                    models.CharField(
                        choices=[("bounce", "Bounce"), ("complaint", "Reclamação"), ("error", "Erro permanente")],
                        max_length=20,
                        verbose_name="Motivo",
                    ),
                ),
                (
                    "error_code",
                    models.CharField(blank=True, default="", max_length=100, verbose_name="Código do erro"),
                ),
                ("error_message", models.TextField(blank=True, default="", verbose_name="Mensagem do erro")),
                (
                    "first_failed_at",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="Primeira falha"),
                ),
                (
                    "last_attempt_at",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="Última tentativa"),
                ),
                ("attempt_count", models.PositiveIntegerField(default=1, verbose_name="Tentativas")),
                ("is_active", models.BooleanField(default=True, verbose_name="Ativo")),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="tenants.company",
                        verbose_name="Empresa",
                    ),
                ),
            ],
            options={
                "verbose_name": "E-mail Bloqueado",
                "verbose_name_plural": "E-mails Bloqueados",
                "ordering": ["-last_attempt_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "email"), name="unique_blacklist_company_email"),
                ],
            },
        ),
    ]
