"""
Models do app tenants.
"""

from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.core.cache import config_cache
from apps.core.models import BaseModel


class Company(BaseModel):
    """Empresa/Igreja sede no sistema."""

    name = models.CharField("Nome", max_length=200)
    slug = models.SlugField("Slug", unique=True)
    contact_email = models.EmailField("E-mail de contato")
    contact_phone = models.CharField("Telefone de contato", max_length=20, blank=True)
    is_active = models.BooleanField("Ativa", default=True)

    class Meta:
        verbose_name = "Empresa"
        verbose_name_plural = "Empresas"
        ordering = ["name"]

    def __str__(self):
        return self.name


class CompanySettings(BaseModel):
    """Credenciais dos canais de notificação da empresa (SMTP, SES, WhatsApp)."""

    company = models.OneToOneField(
        Company,
        on_delete=models.CASCADE,
        related_name="settings",
    )

    # ==================== E-MAIL: SMTP ====================
    smtp_host = models.CharField("Servidor SMTP", max_length=200, blank=True)
    smtp_port = models.PositiveIntegerField("Porta SMTP", default=587)
    smtp_user = models.CharField("Usuário SMTP", max_length=200, blank=True)
    smtp_pass = models.CharField("Senha SMTP", max_length=200, blank=True)
    smtp_use_tls = models.BooleanField("Usar TLS", default=True)
    smtp_from = models.CharField(
        "Remetente",
        max_length=200,
        blank=True,
        help_text="Endereço usado no campo From (SMTP e SES)",
    )

    # ==================== E-MAIL: AWS SES ====================
    # Quando configurado, tem prioridade sobre o SMTP
    ses_region = models.CharField("Região SES", max_length=30, blank=True)
    ses_access_key_id = models.CharField("Access Key ID", max_length=200, blank=True)
    ses_secret_access_key = models.CharField("Secret Access Key", max_length=200, blank=True)

    # ==================== WHATSAPP / EVOLUTION API ====================
    whatsapp_api_url = models.URLField(
        "URL da Evolution API",
        blank=True,
        help_text="Deixe vazio para usar a URL global",
    )
    whatsapp_api_key = models.CharField("API Key da Instância", max_length=200, blank=True)
    whatsapp_api_instance = models.CharField("Nome da Instância", max_length=100, blank=True)

    class Meta:
        verbose_name = "Configuração"
        verbose_name_plural = "Configurações"
        ordering = ["company"]

    def __str__(self):
        return f"Configurações - {self.company.name}"

    @property
    def is_ses_configured(self):
        return bool(self.ses_access_key_id and self.ses_secret_access_key)

    @property
    def is_smtp_configured(self):
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


@receiver(post_save, sender=Company)
def create_company_settings(sender, instance, created, **kwargs):
    """Garante que toda empresa tenha configurações."""
    if created:
        CompanySettings.objects.create(company=instance)


@receiver(post_save, sender=CompanySettings)
def invalidate_company_config(sender, instance, **kwargs):
    config_cache.invalidate_company(instance.company_id)
