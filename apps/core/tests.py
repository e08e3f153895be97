from decimal import Decimal
from unittest.mock import Mock

import pytest
from django.core.cache import cache
from django.core.exceptions import ValidationError

from apps.core.cache import CACHE_KEYS, ConfigCache, config_cache
from apps.core.utils import format_brl
from apps.payments.models import Transaction
from apps.tenants.services import get_email_config, get_whatsapp_config


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


class TestConfigCache:
    def test_get_or_set_calls_loader_once(self):
        loader = Mock(return_value={"host": "smtp.example.com"})
        config = ConfigCache()

        assert config.get_or_set("smtp:config:1", loader) == {"host": "smtp.example.com"}
        assert config.get_or_set("smtp:config:1", loader) == {"host": "smtp.example.com"}
        loader.assert_called_once()

    def test_none_is_not_cached(self):
        loader = Mock(return_value=None)
        config = ConfigCache()

        config.get_or_set("whatsapp:config:1", loader)
        config.get_or_set("whatsapp:config:1", loader)
        assert loader.call_count == 2

    def test_invalidate_company(self):
        config = ConfigCache()
        config.set(CACHE_KEYS["smtp"]("42"), "smtp")
        config.set(CACHE_KEYS["whatsapp"]("42"), "whatsapp")

        config.invalidate_company("42")

        assert config.get(CACHE_KEYS["smtp"]("42")) is None
        assert config.get(CACHE_KEYS["whatsapp"]("42")) is None


@pytest.mark.django_db
class TestCompanyConfig:
    def test_company_gets_settings_automatically(self, company):
        assert company.settings is not None

    def test_whatsapp_config_falls_back_to_global_url(self, company, settings):
        settings.EVOLUTION_API_URL = "https://evolution.example.com"
        company.settings.whatsapp_api_key = "key"
        company.settings.whatsapp_api_instance = "igreja"
        company.settings.save()

        whatsapp = get_whatsapp_config(company.id)

        assert whatsapp.api_url == "https://evolution.example.com"
        assert whatsapp.is_configured

    def test_saving_settings_invalidates_cache(self, company):
        assert not get_email_config(company.id).has_smtp

        company.settings.smtp_host = "smtp.example.com"
        company.settings.smtp_user = "user"
        company.settings.smtp_pass = "secret"
        company.settings.save()

        assert get_email_config(company.id).has_smtp
        assert config_cache.get(CACHE_KEYS["smtp"](company.id)) is not None

    def test_ses_requires_all_credentials(self, company):
        company.settings.ses_access_key_id = "AKIA"
        company.settings.save()
        assert not get_email_config(company.id).has_ses

        company.settings.ses_secret_access_key = "secret"
        company.settings.save()
        # Região cai no padrão global
        assert get_email_config(company.id).has_ses


@pytest.mark.django_db
class TestCompanyModel:
    def test_prevent_company_change(self, company, company2, user):
        tx = Transaction.objects.create(company=company, contributor=user, amount=Decimal("10.00"))

        tx.company = company2
        with pytest.raises(ValidationError, match="Não é permitido alterar a empresa."):
            tx.save(check_company=True)

    def test_company_change_allowed_without_check(self, company, company2, user):
        tx = Transaction.objects.create(company=company, contributor=user, amount=Decimal("10.00"))

        tx.company = company2
        tx.save()
        tx.refresh_from_db()
        assert tx.company_id == company2.id


class TestFormatBrl:
    def test_formats_thousands(self):
        assert format_brl(Decimal("1234.5")) == "1.234,50"

    def test_handles_none_and_strings(self):
        assert format_brl(None) == "0,00"
        assert format_brl("99,9") == "99,90"
        assert format_brl("abc") == "abc"
