import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=200, verbose_name="Nome")),
                ("slug", models.SlugField(unique=True, verbose_name="Slug")),
                ("contact_email", models.EmailField(max_length=254, verbose_name="E-mail de contato")),
                ("contact_phone", models.CharField(blank=True, max_length=20, verbose_name="Telefone de contato")),
                ("is_active", models.BooleanField(default=True, verbose_name="Ativa")),
            ],
            options={
                "verbose_name": "Empresa",
                "verbose_name_plural": "Empresas",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="CompanySettings",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("smtp_host", models.CharField(blank=True, max_length=200, verbose_name="Servidor SMTP")),
                ("smtp_port", models.PositiveIntegerField(default=587, verbose_name="Porta SMTP")),
                ("smtp_user", models.CharField(blank=True, max_length=200, verbose_name="Usuário SMTP")),
                ("smtp_pass", models.CharField(blank=True, max_length=200, verbose_name="Senha SMTP")),
                ("smtp_use_tls", models.BooleanField(default=True, verbose_name="Usar TLS")),
                (
                    "smtp_from",
                    models.CharField(
                        blank=True,
                        help_text="Endereço usado no campo From (SMTP e SES)",
                        max_length=200,
                        verbose_name="Remetente",
                    ),
                ),
                ("ses_region", models.CharField(blank=True, max_length=30, verbose_name="Região SES")),
                ("ses_access_key_id", models.CharField(blank=True, max_length=200, verbose_name="Access Key ID")),
                (
                    "ses_secret_access_key",
                    models.CharField(blank=True, max_length=200, verbose_name="Secret Access Key"),
                ),
                (
                    "whatsapp_api_url",
                    models.URLField(
                        blank=True,
                        help_text="Deixe vazio para usar a URL global",
                        verbose_name="URL da Evolution API",
                    ),
                ),
                ("whatsapp_api_key", models.CharField(blank=True, max_length=200, verbose_name="API Key da Instância")),
                (
                    "whatsapp_api_instance",
                    models.CharField(blank=True, max_length=100, verbose_name="Nome da Instância"),
                ),
                (
                    "company",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="settings",
                        to="tenants.company",
                    ),
                ),
            ],
            options={
                "verbose_name": "Configuração",
                "verbose_name_plural": "Configurações",
                "ordering": ["company"],
            },
        ),
    ]
