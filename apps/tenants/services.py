"""
Leitura das configurações de canais por empresa, com cache de 5 minutos.
"""

from dataclasses import dataclass

from django.conf import settings as django_settings

from apps.core.cache import CACHE_KEYS, config_cache


@dataclass(frozen=True)
class EmailConfig:
    from_email: str = ""
    ses_region: str = ""
    ses_access_key_id: str = ""
    ses_secret_access_key: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_use_tls: bool = True

    @property
    def has_ses(self) -> bool:
        return bool(self.ses_access_key_id and self.ses_secret_access_key and self.ses_region)

    @property
    def has_smtp(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


@dataclass(frozen=True)
class WhatsAppConfig:
    api_url: str = ""
    api_key: str = ""
    instance: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.instance)


def _load_settings(company_id):
    from apps.tenants.models import CompanySettings

    return CompanySettings.objects.filter(company_id=company_id).first()


def get_email_config(company_id) -> EmailConfig:
    def loader():
        settings = _load_settings(company_id)
        if not settings:
            return EmailConfig()
        return EmailConfig(
            from_email=settings.smtp_from or django_settings.DEFAULT_FROM_EMAIL,
            ses_region=settings.ses_region or django_settings.AWS_SES_REGION,
            ses_access_key_id=settings.ses_access_key_id,
            ses_secret_access_key=settings.ses_secret_access_key,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_pass=settings.smtp_pass,
            smtp_use_tls=settings.smtp_use_tls,
        )

    return config_cache.get_or_set(CACHE_KEYS["smtp"](company_id), loader)


def get_whatsapp_config(company_id) -> WhatsAppConfig:
    def loader():
        settings = _load_settings(company_id)
        if not settings:
            return WhatsAppConfig()
        return WhatsAppConfig(
            api_url=settings.whatsapp_api_url or getattr(django_settings, "EVOLUTION_API_URL", ""),
            api_key=settings.whatsapp_api_key,
            instance=settings.whatsapp_api_instance,
        )

    return config_cache.get_or_set(CACHE_KEYS["whatsapp"](company_id), loader)
