from unittest.mock import Mock, patch

import pytest
import requests

from apps.notifications.whatsapp.channel import WHATSAPP_NOT_CONFIGURED, WhatsAppChannel
from apps.notifications.whatsapp.client import EvolutionAPIError, EvolutionClient, normalize_phone
from apps.tenants.services import WhatsAppConfig

CONFIG = WhatsAppConfig(api_url="https://evo.example.com", api_key="chave", instance="igreja")


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    return response


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("(11) 99999-8888", "5511999998888"),
            ("1133334444", "551133334444"),
            ("+55 11 99999-8888", "5511999998888"),
        ],
    )
    def test_adds_country_code(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_without_area_code_is_rejected(self):
        with pytest.raises(EvolutionAPIError):
            normalize_phone("999998888")


class TestWhatsAppChannel:
    def test_not_configured(self):
        channel = WhatsAppChannel(WhatsAppConfig(api_url="https://evo.example.com", api_key="chave"))

        result = channel.send("11999998888", "Olá")

        assert channel.is_configured is False
        assert result["success"] is False
        assert result["error_code"] == WHATSAPP_NOT_CONFIGURED

    def test_empty_phone(self):
        result = WhatsAppChannel(CONFIG).send("", "Olá")
        assert result["error_code"] == "PHONE_EMPTY"

    @patch("apps.notifications.whatsapp.client.requests.request")
    def test_success(self, mock_request):
        mock_request.return_value = _response(201, {"key": {"id": "BAE5F00D"}, "status": "PENDING"})

        result = WhatsAppChannel(CONFIG).send("(11) 99999-8888", "Olá João")

        assert result["success"] is True
        assert result["message_id"] == "BAE5F00D"
        kwargs = mock_request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://evo.example.com/message/sendText/igreja"
        assert kwargs["json"] == {"number": "5511999998888", "text": "Olá João", "delay": 1200}
        assert kwargs["headers"]["apikey"] == "chave"

    @patch("apps.notifications.whatsapp.client.requests.request")
    def test_response_without_message_id(self, mock_request):
        mock_request.return_value = _response(200, {"status": "PENDING"})

        result = WhatsAppChannel(CONFIG).send("11999998888", "Olá")

        assert result["success"] is False

    @patch("apps.notifications.whatsapp.client.requests.request")
    def test_api_error_returns_status_code(self, mock_request):
        mock_request.return_value = _response(400, {"message": "number not exists"})

        result = WhatsAppChannel(CONFIG).send("11999998888", "Olá")

        assert result["success"] is False
        assert result["error_code"] == "400"
        assert "number not exists" in result["error"]

    @patch("apps.notifications.whatsapp.client.requests.request")
    def test_connection_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.ConnectionError("recusado")

        result = WhatsAppChannel(CONFIG).send("11999998888", "Olá")

        assert result["success"] is False
        assert result["error_code"] == ""

    def test_invalid_phone_is_a_failure(self):
        client = EvolutionClient(base_url=CONFIG.api_url, api_key=CONFIG.api_key, instance=CONFIG.instance)

        result = WhatsAppChannel(CONFIG, client=client).send("999998888", "Olá")

        assert result["success"] is False

    @pytest.mark.django_db
    def test_for_company_reads_settings(self, company):
        assert not WhatsAppChannel.for_company(company.id).is_configured

        company.settings.whatsapp_api_url = "https://evo.example.com"
        company.settings.whatsapp_api_key = "chave"
        company.settings.whatsapp_api_instance = "igreja"
        company.settings.save()

        channel = WhatsAppChannel.for_company(company.id)
        assert channel.is_configured
        assert channel.client.instance == "igreja"
